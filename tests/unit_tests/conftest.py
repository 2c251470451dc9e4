# -*- coding: utf-8 -*-

import pytest

from pledge import ManualScheduler, ThreadScheduler, config, \
    set_default_scheduler


@pytest.fixture(autouse=True)
def reset_globals():
    config.reset()
    set_default_scheduler(None)
    yield
    config.reset()
    set_default_scheduler(None)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def thread_scheduler():
    s = ThreadScheduler(name='pledge-test')
    yield s
    s.shutdown()
