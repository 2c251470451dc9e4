# -*- coding: utf-8 -*-

from .promise import Promise


class Deferred(object):
    """Producer-side handle of a Promise.

    A Deferred is the "creator" side of an async task, whereas a Promise
    represents the asynchronous value from the "consumer" side. It's useful
    when the code settling the Promise isn't the one creating it.

    Attributes:
        promise (Promise): the Promise associated to the Deferred.
        resolve (function): settle function fulfilling the promise. A Promise
            or a thenable passed to it is followed, not used as value.
        reject (function): settle function rejecting the promise.
    """

    def __init__(self, scheduler=None, _name=None):
        self.promise = Promise(self._executor, scheduler=scheduler,
                               _name=_name or 'DEFERRED')

    def _executor(self, resolve, reject):
        self.resolve = resolve
        self.reject = reject
