######################################################################
#
# File: b2client/_internal/api_config.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from typing import Callable

import requests

from .raw_api import AbstractRawApi, B2RawHTTPApi


class B2HttpApiConfig:
    """
    How the http layer of a client is built.

    :param http_session_factory: makes the ``requests.Session`` (or a look-alike) used for all calls
    :param install_clock_skew_hook: compare the ``Date`` of every response with the local clock
    :param user_agent_append: added at the end of the ``User-Agent`` header
    :param _raw_api_class: replaces :class:`B2RawHTTPApi`, tests pass the simulator here
    :param http_pool_size: connections kept open per host, the ``requests`` default if not given
    """

    DEFAULT_RAW_API_CLASS = B2RawHTTPApi

    def __init__(
        self,
        http_session_factory: Callable[[], requests.Session] = requests.Session,
        install_clock_skew_hook: bool = True,
        user_agent_append: str | None = None,
        _raw_api_class: type[AbstractRawApi] | None = None,
        http_pool_size: int | None = None,
    ):
        self.http_session_factory = http_session_factory
        self.install_clock_skew_hook = install_clock_skew_hook
        self.user_agent_append = user_agent_append
        self.raw_api_class = _raw_api_class or self.DEFAULT_RAW_API_CLASS
        self.http_pool_size = http_pool_size


DEFAULT_HTTP_API_CONFIG = B2HttpApiConfig()
