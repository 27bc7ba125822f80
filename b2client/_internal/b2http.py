######################################################################
#
# File: b2client/_internal/b2http.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import datetime
import io
import json
import locale
import logging
import socket
import threading
import time
from contextlib import contextmanager
from random import random
from typing import Any, Callable

import requests
from requests.adapters import HTTPAdapter
from typing_extensions import Literal

from b2client.version import USER_AGENT

from .api_config import DEFAULT_HTTP_API_CONFIG, B2HttpApiConfig
from .exception import (
    NON_JSON_RESPONSE_CODE,
    NON_JSON_RESPONSE_MESSAGE,
    B2ConnectionError,
    B2Error,
    B2RequestTimeout,
    B2RequestTimeoutDuringUpload,
    BadDateFormat,
    BrokenPipe,
    ClockSkew,
    ConnectionReset,
    InvalidJsonResponse,
    PotentialS3EndpointPassedAsRealm,
    UnknownError,
    UnknownHost,
    interpret_b2_error,
)
from .utils.typing import JSON

LOCALE_LOCK = threading.Lock()
logger = logging.getLogger(__name__)

HttpMethod = Literal['POST', 'GET', 'HEAD']


@contextmanager
def setlocale(name):
    """
    Switch the process locale for the duration of the block.

    The locale is global, so concurrent users are serialized.
    """
    with LOCALE_LOCK:
        saved = locale.setlocale(locale.LC_ALL)
        try:
            yield locale.setlocale(locale.LC_ALL, name)
        finally:
            locale.setlocale(locale.LC_ALL, saved)


class ResponseContextManager:
    """
    Hand out a streaming response and close it when the block ends.
    """

    def __init__(self, response):
        self.response = response

    def __enter__(self):
        return self.response

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.response.close()


class HttpCallback:
    """
    Hooks run around every request made by :class:`B2Http`. Both do nothing here.
    """

    def pre_request(self, method, url, headers):
        """
        Run before the request is sent.

        To stop the request, raise a subclass of ``B2HttpCallbackPreRequestException``.
        """

    def post_request(self, method, url, headers, response):
        """
        Run after the response has arrived.

        To fail the request, raise a subclass of ``B2HttpCallbackPostRequestException``.
        """


class ClockSkewHook(HttpCallback):
    """
    Fail requests when the local clock is far from the clock of the server.

    Auth tokens and upload timestamps are compared against server time, so a wrong clock
    breaks things in ways which are hard to diagnose later.
    """

    MAX_ALLOWED_SKEW_SECONDS = 10 * 60

    # e.g. "Fri, 16 Dec 2016 20:52:30 GMT"
    DATE_FORMAT = '%a, %d %b %Y %H:%M:%S %Z'

    def post_request(self, method, url, headers, response):
        server_date = response.headers.get('Date')
        if server_date is None:
            return
        try:
            # day and month names are English whatever the local settings are
            with setlocale('C'):
                server_time = datetime.datetime.strptime(server_date, self.DATE_FORMAT)
        except ValueError:
            logger.exception('server returned date in an inappropriate format')
            raise BadDateFormat(server_date)
        local_time = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
        skew_seconds = (local_time - server_time).total_seconds()
        if abs(skew_seconds) > self.MAX_ALLOWED_SKEW_SECONDS:
            raise ClockSkew(skew_seconds)


class B2Http:
    """
    HTTP transport of the B2 client, on top of one :class:`requests.Session`.

    Every failure is raised as a :class:`B2Error`. Failures which may go away by
    themselves (e.g. 503 or 429 answers, broken connections) are retried with a
    growing pause in between, up to ``try_count`` attempts in total.

    .. code-block:: python

       try:
           bucket_list = b2_http.post_json_return_json(url, headers, params)
       except B2Error as e:
           ...
    """

    CONNECTION_TIMEOUT = 3 + 6 + 12 + 24 + 1  # 4 tcp retransmissions and a second of latency
    TIMEOUT = 128
    TIMEOUT_FOR_UPLOAD = 128
    TRY_COUNT_DATA = 20
    TRY_COUNT_DOWNLOAD = 20
    TRY_COUNT_HEAD = 5
    TRY_COUNT_OTHER = 5

    FIRST_RETRY_WAIT_SECONDS = 1.0
    RETRY_WAIT_MULTIPLIER = 1.5
    MAX_RETRY_WAIT_SECONDS = 64

    def __init__(self, api_config: B2HttpApiConfig = DEFAULT_HTTP_API_CONFIG):
        self.user_agent = USER_AGENT
        if api_config.user_agent_append:
            self.user_agent += ' ' + api_config.user_agent_append
        self.session = api_config.http_session_factory()
        if api_config.http_pool_size is not None:
            # parts of a large file are sent in parallel, one connection each
            adapter = HTTPAdapter(
                pool_connections=api_config.http_pool_size,
                pool_maxsize=api_config.http_pool_size,
            )
            self.session.mount('http://', adapter)
            self.session.mount('https://', adapter)
        self.callbacks: list[HttpCallback] = []
        if api_config.install_clock_skew_hook:
            self.add_callback(ClockSkewHook())

    def add_callback(self, callback: HttpCallback):
        self.callbacks.append(callback)

    def close(self):
        self.session.close()

    def request(
        self,
        method: HttpMethod,
        url: str,
        headers: dict[str, str],
        data: io.IOBase | bytes | None = None,
        try_count: int = TRY_COUNT_DATA,
        params: dict[str, Any] | None = None,
        *,
        stream: bool = False,
        _timeout: int | None = None,
    ) -> requests.Response:
        """
        Send a request and return the successful response.

        :param data: the body, bytes or a seekable stream which is rewound before each attempt
        :param try_count: how many attempts may be made
        :param params: the query string of GET and HEAD requests; for POST requests they
                       only help to describe a failure
        :param stream: leave the body of the response unread
        :param _timeout: read timeout in seconds, if not the default one
        :raises B2Error: when the last attempt fails, or when the failure is not worth a retry
        """
        method = method.upper()
        request_headers = {**headers, 'User-Agent': self.user_agent}
        query = params if method in ('GET', 'HEAD') else None

        def send():
            if data is not None and not isinstance(data, bytes):
                data.seek(0)
            for callback in self.callbacks:
                callback.pre_request(method, url, request_headers)
            response = self.session.request(
                method,
                url,
                headers=request_headers,
                data=data,
                params=query,
                timeout=(self.CONNECTION_TIMEOUT, _timeout or self.TIMEOUT),
                stream=stream,
            )
            for callback in self.callbacks:
                callback.post_request(method, url, request_headers, response)
            return response

        return self._translate_and_retry(send, try_count, params)

    def request_content_return_json(
        self,
        method: HttpMethod,
        url: str,
        headers: dict[str, str],
        data: io.IOBase | bytes | None = None,
        try_count: int = TRY_COUNT_DATA,
        params: dict[str, Any] | None = None,
        *,
        _timeout: int | None = None,
    ) -> JSON:
        response = self.request(
            method,
            url,
            headers={**headers, 'Accept': 'application/json'},
            data=data,
            try_count=try_count,
            params=params,
            _timeout=_timeout,
        )
        try:
            return json.loads(response.content.decode('utf-8'))
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidJsonResponse(response.content)
        finally:
            response.close()

    def post_content_return_json(
        self,
        url: str,
        headers: dict[str, str],
        data: bytes | io.IOBase,
        try_count: int = TRY_COUNT_DATA,
        post_params: dict[str, Any] | None = None,
        _timeout: int | None = None,
    ) -> JSON:
        """
        POST raw ``data`` (an upload) and return the decoded JSON answer.

        :raises B2RequestTimeoutDuringUpload: if the server did not answer in time
        """
        try:
            return self.request_content_return_json(
                'POST',
                url,
                headers,
                data,
                try_count,
                post_params,
                _timeout=_timeout or self.TIMEOUT_FOR_UPLOAD,
            )
        except B2RequestTimeout:
            # the upload may still be alive on the server, so the caller has to get a new lease
            raise B2RequestTimeoutDuringUpload()

    def post_json_return_json(self, url, headers, params, try_count: int = TRY_COUNT_OTHER):
        """
        POST ``params`` encoded as a JSON document and return the decoded JSON answer.
        """
        return self.request_content_return_json(
            'POST',
            url,
            {**headers, 'Content-Type': 'application/json'},
            json.dumps(params).encode(),
            try_count,
            params,
        )

    def get_json_return_json(self, url, headers, params, try_count: int = TRY_COUNT_OTHER):
        """
        GET a URL with ``params`` in the query string and return the decoded JSON.

        Values equal to ``None`` are not sent.
        """
        query = {key: value for key, value in params.items() if value is not None}
        return self.request_content_return_json(
            'GET', url, headers, try_count=try_count, params=query
        )

    def get_content(self, url, headers, params=None, try_count: int = TRY_COUNT_DOWNLOAD):
        """
        Start a download.

        .. code-block:: python

           with b2_http.get_content(url, headers) as response:
               for chunk in response.iter_content(chunk_size=1024):
                   ...

        :return: a context manager yielding the streaming response, which it closes on exit
        """
        response = self.request(
            'GET',
            url,
            headers=headers,
            try_count=try_count,
            params=params,
            stream=True,
            _timeout=self.TIMEOUT,
        )
        return ResponseContextManager(response)

    def head_content(
        self,
        url: str,
        headers: dict[str, Any],
        params: dict[str, Any] | None = None,
        try_count: int = TRY_COUNT_HEAD,
    ) -> requests.Response:
        """
        Fetch the headers of a file without its content.
        """
        return self.request('HEAD', url, headers=headers, params=params, try_count=try_count)

    @classmethod
    def _decode_error(cls, response) -> dict[str, Any]:
        """
        Return the ``{"status", "code", "message"}`` document of a failed response.

        Bodies which are not such a document are wrapped into one.
        """
        try:
            error = json.loads(response.content.decode('utf-8')) if response.content else {}
            if not isinstance(error, dict):
                raise ValueError('json error value is not a dict')
            return error
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
            logger.error('failed to decode error response: %r', response.content)
        # s3 urls look like https://s3.us-west-000.backblazeb2.com and never answer with B2 json
        if '://s3.' in response.url:
            raise PotentialS3EndpointPassedAsRealm(response.content)
        return {
            'code': NON_JSON_RESPONSE_CODE,
            'message': NON_JSON_RESPONSE_MESSAGE +
                       response.content.decode('utf-8', errors='replace'),
        }  # yapf: disable

    @classmethod
    def _error_from_response(cls, response, post_params) -> B2Error:
        error = cls._decode_error(response)
        unsupported_keys = error.keys() - {'code', 'status', 'message'}
        if unsupported_keys:
            logger.debug('received error has extra (unsupported) keys: %s', unsupported_keys)
        status = response.status_code
        if str(error.get('status', status)) != str(status):
            logger.warning(
                'Inconsistent status codes returned by the server %r != %r',
                error.get('status'),
                status,
            )
        return interpret_b2_error(
            status,
            str(error['code']) if 'code' in error else None,
            str(error['message']) if 'message' in error else None,
            response.headers,
            post_params,
        )

    @classmethod
    def _connection_error(cls, error: requests.ConnectionError) -> B2Error:
        urllib3_exceptions = requests.packages.urllib3.exceptions
        cause = error.args[0] if error.args else None
        if isinstance(cause, urllib3_exceptions.MaxRetryError):
            if 'nodename nor servname provided, or not known' in cause.args[0]:
                # DNS failing means something is down between here and B2
                return UnknownHost()
        elif isinstance(cause, urllib3_exceptions.ProtocolError):
            reason = cause.args[1] if len(cause.args) > 1 else None
            if isinstance(reason, TimeoutError):
                return B2RequestTimeout(str(error))
            if isinstance(reason, socket.error) and reason.args[1:2] == ('Broken pipe',):
                # the service usually rejects an upload for cause this way
                return BrokenPipe()
        return B2ConnectionError(str(error))

    @classmethod
    def _translate_errors(cls, send: Callable[[], requests.Response], post_params=None):
        """
        Make one attempt, raising any failure as the matching :class:`B2Error`.
        """
        try:
            response = send()
        except B2Error:
            raise
        except requests.ConnectionError as e:
            raise cls._connection_error(e)
        except requests.Timeout as e:
            raise B2RequestTimeout(str(e))
        except Exception as e:
            text = repr(e)
            # urllib3 lets pyOpenSSL's SysCallError(104, 'ECONNRESET') through
            if text.startswith('SysCallError') and 'ECONNRESET' in text:
                raise ConnectionReset()
            logger.exception('_translate_errors has intercepted an unexpected exception')
            raise UnknownError(text)
        if response.status_code not in (200, 206):
            raise cls._error_from_response(response, post_params)
        return response

    @classmethod
    def _translate_and_retry(
        cls, send: Callable[[], requests.Response], try_count: int, post_params=None
    ):
        """
        Make up to ``try_count`` attempts, pausing between them.

        The pause starts at a second and grows by half after every failure; past the
        limit it is randomized, so that clients do not come back all at once.
        A ``Retry-After`` given by the server takes precedence.
        """
        wait_time = cls.FIRST_RETRY_WAIT_SECONDS
        for _ in range(try_count - 1):
            try:
                return cls._translate_errors(send, post_params)
            except B2Error as e:
                if not e.should_retry_http():
                    raise
                logger.debug(str(e), exc_info=True)
                if e.retry_after_seconds is not None:
                    sleep_duration = float(e.retry_after_seconds)
                    sleep_reason = 'server asked us to'
                else:
                    sleep_duration = wait_time
                    sleep_reason = 'that is what the default exponential backoff is'
                logger.info(
                    'Pausing thread for %i seconds because %s', sleep_duration, sleep_reason
                )
                time.sleep(sleep_duration)
            wait_time *= cls.RETRY_WAIT_MULTIPLIER
            if wait_time > cls.MAX_RETRY_WAIT_SECONDS:
                wait_time = cls.MAX_RETRY_WAIT_SECONDS + random()
        # the last attempt raises whatever it gets
        return cls._translate_errors(send, post_params)
