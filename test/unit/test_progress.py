######################################################################
#
# File: test/unit/test_progress.py
#
# Copyright 2024 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import logging

import pytest

from b2client.v1 import (
    DoNothingProgressListener,
    ProgressListenerForTest,
    SimpleProgressListener,
    TqdmProgressListener,
    make_progress_listener,
)


@pytest.fixture
def without_tqdm(monkeypatch):
    monkeypatch.setattr('b2client._internal.progress.tqdm', None)


class TestMakeProgressListener:
    def test_quiet(self):
        assert type(make_progress_listener('upload', quiet=True)) is DoNothingProgressListener

    def test_progress_bar(self):
        pytest.importorskip('tqdm')

        assert type(make_progress_listener('upload', quiet=False)) is TqdmProgressListener

    @pytest.mark.usefixtures('without_tqdm')
    def test_logging_when_tqdm_is_missing(self):
        assert type(make_progress_listener('upload', quiet=False)) is SimpleProgressListener


@pytest.mark.usefixtures('without_tqdm')
def test_progress_bar_needs_tqdm():
    with pytest.raises(ModuleNotFoundError):
        TqdmProgressListener('upload')


def test_recording_listener():
    with ProgressListenerForTest() as listener:
        listener.set_total_bytes(10)
        listener.bytes_completed(4)
        listener.bytes_completed(10)

    assert listener.get_calls() == [
        'set_total_bytes(10)',
        'bytes_completed(4)',
        'bytes_completed(10)',
        'close()',
    ]
    assert listener.get_bytes_completed() == [4, 10]
    assert listener.is_closed


def test_closing_twice_is_a_bug():
    listener = DoNothingProgressListener()
    listener.close()

    with pytest.raises(AssertionError):
        listener.close()


class TestSimpleProgressListener:
    @pytest.fixture
    def clock(self, mocker):
        return mocker.patch('time.monotonic', return_value=100.0)

    def test_reports_percentage_after_the_interval(self, clock, caplog):
        caplog.set_level(logging.INFO, logger='b2client._internal.progress')
        with SimpleProgressListener('db.tar') as listener:
            listener.set_total_bytes(200)
            listener.bytes_completed(50)
            clock.return_value = 104.0
            listener.bytes_completed(100)

        assert [record.getMessage() for record in caplog.records] == ['db.tar: 50%', 'db.tar: done']

    def test_silent_without_total(self, clock, caplog):
        caplog.set_level(logging.INFO, logger='b2client._internal.progress')
        with SimpleProgressListener('db.tar') as listener:
            clock.return_value = 200.0
            listener.bytes_completed(100)

        assert caplog.records == []
