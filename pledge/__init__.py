# -*- coding: utf-8 -*-

from .__version__ import __version__  # noqa

from .decorators import wrap_promise
from .deferred import Deferred
from .promise import Promise, State, TimeoutError
from .scheduler import (ManualScheduler, ThreadScheduler,
                        get_default_scheduler, set_default_scheduler)

__all__ = ['Deferred', 'ManualScheduler', 'Promise', 'State',
           'ThreadScheduler', 'TimeoutError', 'get_default_scheduler',
           'set_default_scheduler', 'wrap_promise']
