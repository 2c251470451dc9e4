# -*- coding: utf-8 -*-

from collections import namedtuple
from enum import Enum
from functools import partial
import inspect
import logging
from threading import Condition

from . import config
from .scheduler import get_default_scheduler

_logger = logging.getLogger(__name__)


class TimeoutError(Exception):
    """An operation could not be executed within the time allowed."""
    pass


class State(Enum):
    """The three states of a Promise. Only PENDING is not final."""
    PENDING = 'pending'
    FULFILLED = 'fulfilled'
    REJECTED = 'rejected'


# Subscription made by `Promise.then()`. `fulfill` and `reject` are the settle
# functions of the promise returned by `then()`.
Reaction = namedtuple('Reaction',
                      ['on_fulfilled', 'on_rejected', 'fulfill', 'reject'])

_STATE_LETTERS = {
    State.PENDING: 'P',
    State.FULFILLED: 'F',
    State.REJECTED: 'R',
}

# Maximum number of chained promises displayed by repr().
_REPR_MAX_LINKS = 8


class Promise(object):
    """It represents an operation expected to be completed in the future.

    A Promise is used for asynchronous computation. It contains a value not yet
    known when the Promise is created. It allows to set callbacks who will be
    called as soon as the result is known. It's a "promise" of a future value.

    A Promise is settled only once: either fulfilled with a value, or rejected
    with a reason. Any later attempt to settle it is ignored.

    Callbacks are never called synchronously. They're always passed to the
    scheduler of the Promise, which calls them later, in the order they've
    been registered.

    All calls to the methods are thread-safe.
    """

    PENDING = State.PENDING
    FULFILLED = State.FULFILLED
    REJECTED = State.REJECTED

    def __init__(self, executor, scheduler=None, _name=None, _previous=None):
        """Constructor of the Promise.

        Generate the two settle functions for the executor, then call the
        `executor`. It means the executor will be fully executed before the
        constructor returns.
        If the executor raises an exception before having settled the Promise,
        it's caught and the Promise is rejected with this exception.

        Args:
            executor (callable): Takes 2 callable arguments:
                The first one, `settle_fulfilled()` should be called when the
                task is done and must accept the result's value as its only
                argument. If this value is a Promise, or any object with a
                `then` method, the Promise will follow its state instead.
                The second, `settle_rejected()`, should be called when an error
                occurs. Its argument is the reason of the rejection, usually
                an instance of `Exception`.
                Only the first call to one of these functions has an effect.
            scheduler (optional): object with a `schedule(fn)` method, used to
                run the callbacks. By default, the global default scheduler.
            _name (str): if set, name used when converted to text.
        """

        self._state = State.PENDING
        self._payload = None
        self._condition = Condition()
        self._consumed = False
        self._waiters = []
        if scheduler is None:
            scheduler = get_default_scheduler()
        self._scheduler = scheduler
        self._name = _name or getattr(executor, '__name__', '???')
        self._previous = _previous
        self._history = ()

        def settle_fulfilled(value):
            if self._consume_guard('fulfill', value):
                _resolve_value(self, value, self._fulfill, self._reject)

        def settle_rejected(reason):
            if self._consume_guard('reject', reason):
                self._reject(reason)

        try:
            executor(settle_fulfilled, settle_rejected)
        except Exception as error:
            with self._condition:
                consumed = self._consumed
            if consumed:
                _logger.debug('Executor of %r raised after settlement. Error '
                              'ignored: %r', self, error)
            else:
                settle_rejected(error)

    @property
    def state(self):
        """State: the current state of the Promise."""
        with self._condition:
            return self._state

    @property
    def scheduler(self):
        return self._scheduler

    def result(self, timeout=None):
        """Wait for the result and returns it as soon as it's available.

        Args:
            timeout (float, optional): if set, maximum time to wait the promise
                to be fulfilled. By default, it can wait indefinitely.
        Returns:
            *: value encapsulated, defined by the operation.
        Raises:
            TimeoutError: if the promise is not settled within the delay.
            *: If the promise is rejected, the rejection cause is raised.
        """
        with self._condition:
            self._wait(timeout)

            if self._state is State.REJECTED:
                raise self._payload
            return self._payload

    def exception(self, timeout=None):
        """Wait for the promise rejection and returns it's error.

        Args:
            timeout (float, optional): if set, maximum time to wait the promise
                to be settled. By default, it can wait indefinitely.
        Returns:
            Exception: the error causing the rejection of the Promise.
            None: if the promise is fulfilled.
        Raises:
            TimeoutError: if the promise is not settled within the delay.
        """
        with self._condition:
            self._wait(timeout)

            if self._state is State.REJECTED:
                return self._payload
            return None

    def then(self, on_fulfilled=None, on_rejected=None):
        """Create a new promise from callbacks called when this one is settled.

        If the promise is fulfilled, the `on_fulfilled` callback will be
        called. Otherwise (the promise has been rejected), the `on_rejected`
        callback is called.
        In any case, the callback will define the state of the returned
        Promise. If the callback raises an exception, the new Promise is
        rejected. The callback can returns:
        - A value: the new promise will be fulfilled with this value.
        - Another Promise, or any object with a `then` method: when fulfilled
            or rejected, will transfer its status (state and result/error) to
            the Promise returned by this method.

        If a callback is not defined (or is not callable), the state of the
        self promise is transferred at the new promise (the state and the
        value/error).

        The callback is never called before `then()` returns, even if the
        promise is already settled.

        Args:
            on_fulfilled (callable, optional):  This callback will receive the
                result of the original promise as argument.
            on_rejected (callable, optional): This callback will receive the
                exception raised by the original promise as argument.
        Returns:
            Promise<*>: new promise depending of self.
        """

        def register_reaction(fulfill, reject):
            reaction = Reaction(on_fulfilled, on_rejected, fulfill, reject)
            with self._condition:
                if self._state is State.PENDING:
                    self._waiters.append(reaction)
                else:
                    self._scheduler.schedule(
                        partial(_dispatch, reaction, self._state,
                                self._payload))

        if not on_rejected:
            name = '%s' % getattr(on_fulfilled, '__name__', '???')
        elif not on_fulfilled:
            name = '<None, %s>' % getattr(on_rejected, '__name__', '???')
        else:
            name = '<%s, %s>' % (getattr(on_fulfilled, '__name__', '???'),
                                 getattr(on_rejected, '__name__', '???'))
        return Promise(register_reaction, scheduler=self._scheduler,
                       _name=name, _previous=self)

    def catch(self, on_rejected):
        """Create a new promise with a callback called when an error occurs.

        Alias of `self.then(None, on_rejected)`

        Args:
            on_rejected (callable): Will be called with the rejection reason if
                `self` is rejected.
        returns:
            Promise<*>: new Promise chained to `self`. If `self` is fulfilled,
                the promised value will be the same as `self`. Otherwise, the
                value returned by the `on_rejected()` callback.
        """
        return self.then(None, on_rejected)

    def safeguard(self):
        """Catch all errors and log them with the most details possible.

        This method is aimed to protect the program from uncaught rejected
        Promise. If no error handler has been set (via then() or catch()), the
        default behavior is to do nothing, and thus, errors are silently
        ignored.
        Calling `safeguard()` after all chains are set will catch these errors,
        and log them as ERROR with the maximum of details possible.
        """
        def guard(error):
            if isinstance(error, BaseException):
                _logger.error('[SAFEGUARD] %s', self, exc_info=error)
            else:
                _logger.error('[SAFEGUARD] %s rejected with non-exception '
                              'value: %r', self, error)

        self.then(None, guard)

    def __repr__(self):
        return 'Promise(%s)' % self._inner_print()

    def _inner_print(self):
        return ' -> '.join(reversed(self._links()))

    def _links(self):
        """Describe this promise and its ancestors, the most recent first.

        Only the `_REPR_MAX_LINKS` most recent are kept; older ones are
        replaced by '...'.
        """
        links = []
        promise = self
        while promise is not None and len(links) <= _REPR_MAX_LINKS:
            with promise._condition:
                links.append('%s %s' % (promise._name,
                                        _STATE_LETTERS[promise._state]))
                previous, history = promise._previous, promise._history
            if previous is None:
                links.extend(history)
            promise = previous
        if len(links) > _REPR_MAX_LINKS:
            links = links[:_REPR_MAX_LINKS] + ['...']
        return links

    @classmethod
    def resolve(cls, value, scheduler=None):
        """Create a promise who resolves the selected value.

        Args:
            value: result of the promise. If it's a Promise, it's returned as
                is. If it's a thenable, the new Promise will follow its state.
            scheduler (optional): scheduler of the new Promise.
        Returns:
            Promise: new Promise settled with the value passed in parameter.
        """
        if isinstance(value, Promise):
            return value
        return cls(lambda ok, error: ok(value), scheduler=scheduler,
                   _name='RESOLVE')

    @classmethod
    def reject(cls, reason, scheduler=None):
        """Create a Promise rejected for the reason specified.

        Args:
            reason: Exception set to the Promise
            scheduler (optional): scheduler of the new Promise.
        Returns:
            Promise: new Promise already rejected.
        """
        return cls(lambda ok, error: error(reason), scheduler=scheduler,
                   _name='REJECT')

    def _wait(self, timeout):
        # Must be called with self._condition held.
        if not self._condition.wait_for(
                lambda: self._state is not State.PENDING, timeout):
            raise TimeoutError()

    def _consume_guard(self, action, value):
        """Mark the settle functions as used.

        Returns:
            boolean: True if it's the first call; False if the settle functions
                have already been used.
        """
        with self._condition:
            if not self._consumed:
                self._consumed = True
                return True
        self._log_redundant(action, value)
        return False

    def _log_redundant(self, action, value):
        if config.get('warn_on_redundant_settlement'):
            level = logging.WARNING
        else:
            level = logging.DEBUG
        _logger.log(level, 'Try to %s Promise %r already settled. New value '
                    'will be ignored: %r', action, self, value)

    def _fulfill(self, value):
        self._transition(State.FULFILLED, value)

    def _reject(self, reason):
        self._transition(State.REJECTED, reason)

    def _transition(self, state, payload):
        with self._condition:
            already_settled = self._state is not State.PENDING
            if not already_settled:
                self._settle(state, payload)
        if already_settled:
            self._log_redundant(state.value, payload)
        else:
            self._forget_previous()

    def _forget_previous(self):
        # A settled promise keeps only the text of its ancestors, so holding
        # the end of a chain doesn't keep the whole chain alive.
        previous = self._previous
        if previous is None:
            return
        history = tuple(previous._links())
        with self._condition:
            self._history = history
            self._previous = None

    def _settle(self, state, payload):
        # Must be called with self._condition held.
        self._state = state
        self._payload = payload
        self._condition.notify_all()

        # Free the references
        waiters, self._waiters = self._waiters, None
        if waiters:
            self._scheduler.schedule(
                partial(_dispatch_all, waiters, state, payload))


def _dispatch(reaction, state, payload):
    """Call the reaction's callback and settle the chained promise."""
    if state is State.FULFILLED:
        handler, pass_through = reaction.on_fulfilled, reaction.fulfill
    else:
        handler, pass_through = reaction.on_rejected, reaction.reject

    if not callable(handler):
        return pass_through(payload)

    try:
        value = handler(payload)
    except Exception as error:
        return reaction.reject(error)
    reaction.fulfill(value)


def _dispatch_all(reactions, state, payload):
    for reaction in reactions:
        _dispatch(reaction, state, payload)


def _resolve_value(promise, value, fulfill, reject):
    """Settle `promise` with a value who can be a Promise or a thenable.

    - settling a promise with itself is an error: it's rejected.
    - if `value` is a Promise, `promise` will get its state when it settles.
    - if `value` has a callable `then` attribute, it's called (in a scheduled
      task) and `promise` will follow the state it reports.
    - any other value fulfills `promise`.

    Args:
        promise (Promise): the promise to settle.
        value: the value to resolve.
        fulfill (callable): set the FULFILLED state of `promise`.
        reject (callable): set the REJECTED state of `promise`.
    """
    if value is promise:
        return reject(TypeError('A promise cannot be settled with itself'))

    if isinstance(value, Promise):
        value.then(fulfill, reject)
        return

    try:
        then = value.then
    except AttributeError as error:
        if _has_then_attribute(value):
            return reject(error)
        then = None
    except Exception as error:
        return reject(error)

    if callable(then):
        def assimilate():
            # The inner Promise guards the callbacks given to `then()`, and
            # resolves recursively the values they receive.
            inner = Promise(then, scheduler=promise.scheduler,
                            _name='THENABLE')
            inner.then(fulfill, reject)

        promise.scheduler.schedule(assimilate)
        return

    fulfill(value)


def _has_then_attribute(value):
    """Check if `value` defines `then`, without evaluating it."""
    try:
        inspect.getattr_static(value, 'then')
    except AttributeError:
        return False
    return True
