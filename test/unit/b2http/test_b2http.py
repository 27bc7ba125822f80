######################################################################
#
# File: test/unit/b2http/test_b2http.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import datetime
import io
import locale
import sys
from email.utils import format_datetime
from unittest.mock import MagicMock, call

import pytest
import requests
import responses
from pytest_mock import MockerFixture
from responses import matchers

from b2client._internal.b2http import setlocale
from b2client.v1 import USER_AGENT, B2Http, B2HttpApiConfig, ClockSkewHook
from b2client.v1.exception import (
    B2ConnectionError,
    B2RequestTimeout,
    B2RequestTimeoutDuringUpload,
    BadDateFormat,
    BadJson,
    BadRequest,
    BrokenPipe,
    ClockSkew,
    ConnectionReset,
    FileNotPresent,
    InvalidAuthToken,
    InvalidJsonResponse,
    PotentialS3EndpointPassedAsRealm,
    ServiceError,
    TooManyRequests,
    UnknownError,
    UnknownHost,
)

URL = 'http://example.com'
urllib3_exceptions = requests.packages.urllib3.exceptions


@pytest.fixture
def user_agent_append():
    return None


@pytest.fixture
def b2_http(user_agent_append: str | None):
    return B2Http(
        B2HttpApiConfig(
            requests.Session,
            install_clock_skew_hook=False,
            user_agent_append=user_agent_append,
        )
    )


@pytest.fixture
def sleep(mocker: MockerFixture):
    return mocker.patch('time.sleep')


def _b2_error(status: int, code: str = 'server_busy', message: str = 'dummy', **kwargs):
    return responses.Response(
        responses.GET,
        URL,
        status=status,
        json={
            'status': status,
            'code': code,
            'message': message
        },
        **kwargs,
    )


class TestErrorTranslation:
    @pytest.mark.parametrize('status', [200, 206])
    @responses.activate
    def test_success(self, b2_http: B2Http, status):
        responses.get(URL, status=status, json={'foo': 'bar'})

        assert b2_http.request('GET', URL, {}, try_count=1).json() == {'foo': 'bar'}

    @responses.activate
    def test_b2_error_keeps_server_details(self, b2_http: B2Http):
        responses.add(_b2_error(503, message='busy'))

        with pytest.raises(ServiceError) as exc_info:
            b2_http.request('GET', URL, {}, try_count=1)

        assert exc_info.value.status == 503
        assert '503 server_busy busy' in str(exc_info.value)

    @responses.activate
    def test_expired_auth_token(self, b2_http: B2Http):
        responses.add(_b2_error(401, code='expired_auth_token'))

        with pytest.raises(InvalidAuthToken) as exc_info:
            b2_http.request('GET', URL, {}, try_count=1)

        assert exc_info.value.code == 'expired_auth_token'

    @responses.activate
    def test_post_params_describe_the_error(self, b2_http: B2Http):
        responses.post(
            URL, status=400, json={
                'status': 400,
                'code': 'file_not_present',
                'message': ''
            }
        )

        with pytest.raises(FileNotPresent) as exc_info:
            b2_http.post_json_return_json(URL, {}, {'fileId': 'id-1'}, try_count=1)

        assert exc_info.value.file_id_or_name == 'id-1'

    @pytest.mark.parametrize(
        'raised,expected',
        [
            (
                requests.ConnectionError(
                    urllib3_exceptions.ProtocolError('dummy', OSError(20, 'Broken pipe'))
                ),
                BrokenPipe,
            ),
            (
                requests.ConnectionError(
                    urllib3_exceptions.ProtocolError('dummy', TimeoutError('write timed out'))
                ),
                B2RequestTimeout,
            ),
            (
                requests.ConnectionError(
                    urllib3_exceptions.MaxRetryError(
                        'nodename nor servname provided, or not known', URL
                    )
                ),
                UnknownHost,
            ),
            (requests.ConnectionError('refused'), B2ConnectionError),
            (requests.ReadTimeout('too slow'), B2RequestTimeout),
            (Exception('surprise'), UnknownError),
        ],
    )
    @responses.activate
    def test_transport_failures(self, b2_http: B2Http, raised, expected):
        responses.get(URL, body=raised)

        with pytest.raises(expected):
            b2_http.request('GET', URL, {}, try_count=1)

    @responses.activate
    def test_connection_reset_from_openssl(self, b2_http: B2Http):
        class SysCallError(Exception):
            pass

        responses.get(URL, body=SysCallError(104, 'ECONNRESET'))

        with pytest.raises(ConnectionReset):
            b2_http.request('GET', URL, {}, try_count=1)

    @responses.activate
    def test_too_many_requests(self, b2_http: B2Http):
        responses.add(_b2_error(429, code='too_many_requests', headers={'Retry-After': '3'}))

        with pytest.raises(TooManyRequests) as exc_info:
            b2_http.request('GET', URL, {}, try_count=1)

        assert exc_info.value.retry_after_seconds == '3'

    @responses.activate
    def test_body_which_is_not_json(self, b2_http: B2Http):
        responses.get(URL, status=400, body=b'{' * 50)

        with pytest.raises(BadRequest) as exc_info:
            b2_http.request('GET', URL, {}, try_count=1)

        assert exc_info.value.code == 'non_json_response'
        assert '{' * 50 in str(exc_info.value)

    @responses.activate
    def test_html_error_page(self, b2_http: B2Http):
        page = '<html><body><h1>502 Bad Gateway</h1></body></html>'
        responses.get(URL, status=502, body=page)

        with pytest.raises(ServiceError) as exc_info:
            b2_http.request('GET', URL, {}, try_count=1)

        assert page in str(exc_info.value)

    @responses.activate
    def test_json_error_which_is_not_a_dict(self, b2_http: B2Http):
        responses.get(URL, status=503, body=b'[]')

        with pytest.raises(ServiceError, match='503'):
            b2_http.request('GET', URL, {}, try_count=1)

    @responses.activate
    def test_status_and_code_swapped(self, b2_http: B2Http):
        responses.get(
            URL,
            status=503,
            json={
                'code': 503,
                'message': 'Service temporarily unavailable',
                'status': 'service_unavailable'
            },
        )

        with pytest.raises(ServiceError, match='503 Service temporarily unavailable'):
            b2_http.request('GET', URL, {}, try_count=1)

    @responses.activate
    def test_s3_endpoint_used_as_realm(self, b2_http: B2Http):
        url = 'https://s3.us-west-000.backblazeb2.com'
        responses.get(url, status=400, body=b'<?xml version="1.0" encoding="UTF-8"?>')

        with pytest.raises(PotentialS3EndpointPassedAsRealm):
            b2_http.request('GET', url, {}, try_count=1)

    @responses.activate
    def test_success_with_broken_json(self, b2_http: B2Http):
        responses.get(URL, body=b'not json')

        with pytest.raises(InvalidJsonResponse):
            b2_http.get_json_return_json(URL, {}, {}, try_count=1)


class TestRetries:
    @responses.activate
    def test_no_pause_after_success(self, b2_http: B2Http, sleep: MagicMock):
        responses.get(URL, json={})

        b2_http.request('GET', URL, {})

        sleep.assert_not_called()

    @responses.activate
    def test_error_not_worth_a_retry(self, b2_http: B2Http, sleep: MagicMock):
        responses.add(_b2_error(400, code='bad_json'))

        with pytest.raises(BadJson):
            b2_http.request('GET', URL, {})

        sleep.assert_not_called()
        assert len(responses.calls) == 1

    @pytest.mark.parametrize(
        'first_failure',
        [
            lambda: _b2_error(503),
            lambda: responses.Response(responses.GET, URL, body=requests.ConnectionError('oops')),
        ],
        ids=['service_error', 'connection_error'],
    )
    @responses.activate
    def test_succeeds_on_second_attempt(self, b2_http: B2Http, sleep: MagicMock, first_failure):
        responses.add(first_failure())
        responses.get(URL, json={})

        b2_http.request('GET', URL, {})

        sleep.assert_called_once_with(1.0)

    @responses.activate
    def test_pause_grows_until_attempts_run_out(self, b2_http: B2Http, sleep: MagicMock):
        for _ in range(3):
            responses.add(_b2_error(503))
        responses.get(URL, json={})

        with pytest.raises(ServiceError):
            b2_http.request('GET', URL, {}, try_count=3)

        assert sleep.mock_calls == [call(1.0), call(1.5)]

    @responses.activate
    def test_retry_after_is_honoured(self, b2_http: B2Http, sleep: MagicMock):
        responses.add(_b2_error(429, headers={'Retry-After': '2'}))
        responses.add(_b2_error(429, headers={'Retry-After': '5'}))

        with pytest.raises(TooManyRequests):
            b2_http.request('GET', URL, {}, try_count=2)

        sleep.assert_called_once_with(2)

    @responses.activate
    def test_backoff_keeps_growing_under_retry_after(self, b2_http: B2Http, sleep: MagicMock):
        responses.add(_b2_error(429))
        responses.add(_b2_error(429, headers={'Retry-After': '5'}))
        responses.add(_b2_error(429))
        responses.get(URL, json={})

        b2_http.request('GET', URL, {}, try_count=4)

        assert sleep.mock_calls == [call(1.0), call(5), call(2.25)]

    @responses.activate
    def test_upload_body_is_sent_whole_every_time(self, b2_http: B2Http, sleep: MagicMock):
        bodies = []

        def record_body(request):
            body = request.body
            bodies.append(body.read() if hasattr(body, 'read') else body)
            if len(bodies) == 1:
                return 503, {}, '{"status": 503, "code": "busy", "message": "busy"}'
            return 200, {}, '{"fileId": "id"}'

        responses.add_callback(responses.POST, URL, callback=record_body)

        assert b2_http.post_content_return_json(URL, {}, io.BytesIO(b'hello')) == {
            'fileId': 'id'
        }
        assert bodies == [b'hello', b'hello']


class TestOperations:
    HEADERS = {'my_header': 'my_value'}

    @pytest.fixture
    def expected_user_agent(self):
        return USER_AGENT

    @pytest.fixture
    def expected_headers(self, expected_user_agent):
        return {**self.HEADERS, 'User-Agent': expected_user_agent}

    @pytest.fixture
    def expected_json_headers(self, expected_headers):
        return {
            **expected_headers,
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        }

    @responses.activate
    def test_post_json_return_json(self, b2_http: B2Http, expected_json_headers):
        responses.post(
            URL,
            json={'color': 'blue'},
            match=(
                matchers.header_matcher(expected_json_headers),
                matchers.json_params_matcher({'fileSize': 100}),
            ),
        )

        assert b2_http.post_json_return_json(
            URL, self.HEADERS, {'fileSize': 100}, try_count=1
        ) == {
            'color': 'blue'
        }

    @responses.activate
    def test_get_json_return_json_skips_none(self, b2_http: B2Http):
        responses.get(
            URL,
            json={'files': []},
            match=(matchers.query_param_matcher({'bucketId': 'b1'}),),
        )

        params = {'bucketId': 'b1', 'prefix': None}
        assert b2_http.get_json_return_json(URL, self.HEADERS, params, try_count=1) == {
            'files': []
        }

    @responses.activate
    def test_upload_timeout(self, b2_http: B2Http):
        responses.post(URL, body=requests.ReadTimeout('too slow'))

        with pytest.raises(B2RequestTimeoutDuringUpload):
            b2_http.post_content_return_json(URL, self.HEADERS, b'data', try_count=1)

    @responses.activate
    def test_callbacks_see_every_request(self, b2_http: B2Http, expected_json_headers):
        callback = MagicMock()
        b2_http.add_callback(callback)
        responses.post(URL, json={})

        b2_http.post_json_return_json(URL, self.HEADERS, {}, try_count=1)

        callback.pre_request.assert_called_once_with('POST', URL, expected_json_headers)
        callback.post_request.assert_called_once_with(
            'POST', URL, expected_json_headers, responses.calls[0].response
        )

    def test_get_content_streams_and_closes(self, b2_http: B2Http, expected_headers):
        close = MagicMock()

        def replace_close(response):
            response.close = close
            return response

        with responses.RequestsMock(response_callback=replace_close) as mock:
            mock.get(
                URL,
                match=(
                    matchers.header_matcher(expected_headers),
                    matchers.request_kwargs_matcher(
                        {
                            'stream': True,
                            'timeout': (B2Http.CONNECTION_TIMEOUT, B2Http.TIMEOUT),
                        }
                    ),
                ),
            )

            with b2_http.get_content(URL, self.HEADERS, try_count=1) as response:
                assert response is mock.calls[0].response
                close.assert_not_called()

            close.assert_called_once_with()

    @responses.activate
    def test_head_content(self, b2_http: B2Http, expected_headers):
        responses.head(
            URL,
            headers={'color': 'blue'},
            match=(matchers.header_matcher(expected_headers),),
        )

        assert b2_http.head_content(URL, self.HEADERS).headers['color'] == 'blue'


class TestOperationsWithUserAgentAppend(TestOperations):
    @pytest.fixture
    def user_agent_append(self):
        return 'ua_extra_string'

    @pytest.fixture
    def expected_user_agent(self):
        return f'{USER_AGENT} ua_extra_string'


def test_setlocale_restores_the_previous_locale():
    # C.UTF-8 is spelled differently across Linux distributions, and macOS or Windows lack it
    test_locale = locale.normalize('C.UTF-8' if sys.platform == 'linux' else 'en_US.UTF-8')
    other_locale = 'C'
    saved = locale.setlocale(locale.LC_ALL)
    if saved == test_locale:
        test_locale, other_locale = other_locale, test_locale

    try:
        locale.setlocale(locale.LC_ALL, test_locale)
        locale.setlocale(locale.LC_ALL, other_locale)
    except locale.Error:
        locale.setlocale(locale.LC_ALL, saved)
        pytest.skip(f'{test_locale} or {other_locale} locale is not available')
    try:
        with setlocale(test_locale):
            assert locale.setlocale(locale.LC_ALL) == test_locale
        assert locale.setlocale(locale.LC_ALL) == other_locale
    finally:
        locale.setlocale(locale.LC_ALL, saved)


class TestClockSkewHook:
    def _post_request(self, headers):
        response = MagicMock()
        response.headers = headers
        ClockSkewHook().post_request('POST', URL, {}, response)

    def test_bad_format(self):
        with pytest.raises(BadDateFormat):
            self._post_request({'Date': 'bad format'})

    def test_skew(self):
        with pytest.raises(ClockSkew):
            self._post_request({'Date': 'Fri, 16 Dec 2016 20:52:30 GMT'})

    def test_current_date(self):
        now = datetime.datetime.now(datetime.timezone.utc)
        self._post_request({'Date': format_datetime(now, usegmt=True)})

    def test_no_date(self):
        self._post_request({})
