######################################################################
#
# File: test/unit/test_raw_api.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import base64
import io

import pytest
import requests
import responses
from responses import matchers

from b2client.v1 import (
    API_VERSION,
    SSE_B2_AES,
    SSE_NONE,
    B2Http,
    B2HttpApiConfig,
    B2RawHTTPApi,
    EncryptionAlgorithm,
    EncryptionKey,
    EncryptionMode,
    EncryptionSetting,
    FileRetentionSetting,
    LegalHold,
    MetadataDirectiveMode,
    RetentionMode,
)
from b2client.v1.exception import (
    B2RequestTimeoutDuringUpload,
    Conflict,
    InvalidAuthToken,
    InvalidMetadataDirective,
    RetentionWriteError,
    ServiceError,
    SSECKeyError,
    UnusableFileName,
    WrongEncryptionModeForBucketDefault,
)

# Unicode characters for testing filenames.  (0x0394 is a letter Delta.)
TWO_BYTE_UNICHR = chr(0x0394)
CHAR_UNDER_32 = chr(31)
DEL_CHAR = chr(127)

API_URL = 'https://api000.backblazeb2.xyz:8180'
UPLOAD_URL = 'https://pod-000-1000-00.backblaze.com/b2api/v3/b2_upload_file/bucket-id/token'


@pytest.fixture
def raw_api():
    return B2RawHTTPApi(B2Http(B2HttpApiConfig(requests.Session, install_clock_skew_hook=False)))


class TestRawAPIFilenames:
    """Test that the filename checker passes conforming names and rejects those that don't."""

    @pytest.mark.parametrize(
        'filename',
        [
            'Kitten Videos',
            '自由.txt',
            # 1024 bytes is ok if the segments are at most 250 chars.
            4 * (250 * 'x' + '/') + 20 * 'y',
            # 1024 bytes with two byte characters should also work.
            4 * (125 * TWO_BYTE_UNICHR + '/') + 20 * 'y',
        ],
    )
    def test_ok(self, raw_api, filename):
        assert raw_api.check_b2_filename(filename) is None

    @pytest.mark.parametrize(
        'filename,exception_message',
        [
            ('', 'at least 1 character'),
            (4 * (250 * 'x' + '/') + 20 * 'y' + 'x', 'too long'),
            (4 * (125 * TWO_BYTE_UNICHR + '/') + 20 * 'y' + 'x', 'too long'),
            ('hey' + CHAR_UNDER_32, 'contains code.*less than 32'),
            # Unicode in the filename shouldn't break the exception message.
            (TWO_BYTE_UNICHR + CHAR_UNDER_32, 'contains code.*less than 32'),
            (DEL_CHAR, 'DEL.*not allowed'),
            ('/hey', 'not start.*/'),
            ('hey/', 'not .*end.*/'),
            ('not//allowed', 'contain.*//'),
            ('foo/' + 251 * 'x', 'segment too long'),
            ('foo/' + 125 * TWO_BYTE_UNICHR + 'x', 'segment too long'),
        ],
    )
    def test_should_raise(self, raw_api, filename, exception_message):
        with pytest.raises(UnusableFileName, match=exception_message):
            raw_api.check_b2_filename(filename)


class TestDownloadUrls:
    DOWNLOAD_URL = 'https://f000.backblazeb2.xyz:8180'

    def test_by_id(self, raw_api):
        assert raw_api.get_download_url_by_id(
            self.DOWNLOAD_URL, 'file-id'
        ) == f'{self.DOWNLOAD_URL}/b2api/{API_VERSION}/b2_download_file_by_id?fileId=file-id'

    def test_by_name_is_url_encoded(self, raw_api):
        assert raw_api.get_download_url_by_name(
            self.DOWNLOAD_URL, 'my-bucket', 'some dir/a b.txt'
        ) == f'{self.DOWNLOAD_URL}/file/my-bucket/some%20dir/a%20b.txt'


class TestUploadHeaders:
    def test_upload_file_headers(self, raw_api):
        headers = raw_api.get_upload_file_headers(
            upload_auth_token='token',
            file_name='a b.txt',
            content_length=10,
            content_type='b2/x-auto',
            content_sha1='abc',
            file_info={'color': 'blue sky'},
            server_side_encryption=SSE_B2_AES,
            file_retention=None,
            legal_hold=LegalHold.ON,
            custom_upload_timestamp=1234,
        )

        assert headers == {
            'Authorization': 'token',
            'Content-Length': '10',
            'X-Bz-File-Name': 'a%20b.txt',
            'Content-Type': 'b2/x-auto',
            'X-Bz-Content-Sha1': 'abc',
            'X-Bz-Info-color': 'blue%20sky',
            'X-Bz-Server-Side-Encryption': 'AES256',
            'X-Bz-File-Legal-Hold': 'on',
            'X-Bz-Custom-Upload-Timestamp': '1234',
        }

    def test_upload_part_headers_repeat_customer_key(self, raw_api):
        sse_c = EncryptionSetting(
            mode=EncryptionMode.SSE_C,
            algorithm=EncryptionAlgorithm.AES256,
            key=EncryptionKey(secret=b'*' * 32),
        )

        headers = raw_api.get_upload_part_headers(
            upload_auth_token='token',
            part_number=2,
            content_length=5,
            content_sha1='abc',
            server_side_encryption=sse_c,
        )

        assert headers['X-Bz-Part-Number'] == '2'
        assert headers['X-Bz-Server-Side-Encryption-Customer-Algorithm'] == 'AES256'
        assert headers['X-Bz-Server-Side-Encryption-Customer-Key'] == base64.b64encode(
            b'*' * 32
        ).decode()

    def test_upload_file_headers_without_encryption(self, raw_api):
        headers = raw_api.get_upload_file_headers(
            upload_auth_token='token',
            file_name='a.txt',
            content_length=1,
            content_type='text/plain',
            content_sha1='abc',
            file_info={},
            server_side_encryption=SSE_NONE,
            file_retention=None,
            legal_hold=None,
        )

        assert not any(name.startswith('X-Bz-Server-Side-Encryption') for name in headers)
        assert SSE_NONE.as_dict() == {'mode': 'none'}

    def test_upload_part_headers_skip_sse_b2(self, raw_api):
        headers = raw_api.get_upload_part_headers(
            upload_auth_token='token',
            part_number=1,
            content_length=5,
            content_sha1='abc',
            server_side_encryption=SSE_B2_AES,
        )

        assert 'X-Bz-Server-Side-Encryption' not in headers


class TestRequests:
    @responses.activate
    def test_authorize_account(self, raw_api):
        expected_auth = 'Basic ' + base64.b64encode(b'key-id:secret').decode()
        responses.get(
            f'{API_URL}/b2api/{API_VERSION}/b2_authorize_account',
            json={'accountId': 'account-1'},
            match=(matchers.header_matcher({'Authorization': expected_auth}),),
        )

        assert raw_api.authorize_account(API_URL, 'key-id', 'secret') == {'accountId': 'account-1'}

    @responses.activate
    def test_list_file_names_drops_missing_params(self, raw_api):
        responses.get(
            f'{API_URL}/b2api/{API_VERSION}/b2_list_file_names',
            json={'files': [], 'nextFileName': None},
            match=(matchers.query_param_matcher({
                'bucketId': 'bucket-1',
                'prefix': 'dir/'
            }),),
        )

        assert raw_api.list_file_names(
            API_URL, 'token', 'bucket-1', prefix='dir/'
        ) == {
            'files': [],
            'nextFileName': None
        }

    @responses.activate
    def test_start_large_file(self, raw_api):
        responses.post(
            f'{API_URL}/b2api/{API_VERSION}/b2_start_large_file',
            json={'fileId': 'file-1'},
            match=(
                matchers.json_params_matcher(
                    {
                        'bucketId': 'bucket-1',
                        'fileName': 'big.bin',
                        'fileInfo': {},
                        'contentType': 'b2/x-auto',
                        'serverSideEncryption': {
                            'mode': 'SSE-B2',
                            'algorithm': 'AES256'
                        },
                    }
                ),
            ),
        )

        result = raw_api.start_large_file(
            API_URL,
            'token',
            'bucket-1',
            'big.bin',
            'b2/x-auto',
            {},
            server_side_encryption=SSE_B2_AES,
        )

        assert result == {'fileId': 'file-1'}

    @responses.activate
    def test_upload_file(self, raw_api):
        responses.post(
            UPLOAD_URL,
            json={'fileId': 'file-1'},
            match=(
                matchers.header_matcher(
                    {
                        'Authorization': 'upload-token',
                        'X-Bz-File-Name': 'hello.txt',
                        'Content-Length': '5',
                    }
                ),
            ),
        )

        result = raw_api.upload_file(
            UPLOAD_URL,
            'upload-token',
            'hello.txt',
            5,
            'text/plain',
            'aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d',
            {},
            io.BytesIO(b'hello'),
        )

        assert result == {'fileId': 'file-1'}
        assert len(responses.calls) == 1

    @responses.activate
    def test_upload_file_is_not_retried(self, raw_api):
        responses.post(
            UPLOAD_URL,
            status=503,
            json={
                'status': 503,
                'code': 'service_unavailable',
                'message': 'busy'
            },
        )

        with pytest.raises(ServiceError):
            raw_api.upload_file(
                UPLOAD_URL, 'upload-token', 'hello.txt', 5, 'text/plain', 'sha1', {},
                io.BytesIO(b'hello')
            )
        assert len(responses.calls) == 1

    @responses.activate
    def test_upload_file_timeout(self, raw_api):
        responses.post(UPLOAD_URL, body=requests.ReadTimeout('slow'))

        with pytest.raises(B2RequestTimeoutDuringUpload):
            raw_api.upload_file(
                UPLOAD_URL, 'upload-token', 'hello.txt', 5, 'text/plain', 'sha1', {},
                io.BytesIO(b'hello')
            )

    def test_upload_file_rejects_bad_name(self, raw_api):
        with pytest.raises(UnusableFileName):
            raw_api.upload_file(
                UPLOAD_URL, 'upload-token', '/bad', 5, 'text/plain', 'sha1', {},
                io.BytesIO(b'hello')
            )

    @responses.activate
    def test_expired_token(self, raw_api):
        responses.post(
            f'{API_URL}/b2api/{API_VERSION}/b2_cancel_large_file',
            status=401,
            json={
                'status': 401,
                'code': 'expired_auth_token',
                'message': 'token expired'
            },
        )

        with pytest.raises(InvalidAuthToken):
            raw_api.cancel_large_file(API_URL, 'token', 'file-1')

    @responses.activate
    def test_download_range_header(self, raw_api):
        url = raw_api.get_download_url_by_id('https://f000.backblazeb2.xyz:8180', 'file-1')
        responses.get(
            url,
            body=b'ell',
            status=206,
            match=(matchers.header_matcher({
                'Range': 'bytes=1-3',
                'Authorization': 'token'
            }),),
        )

        with raw_api.download_file_from_url('token', url, range_=(1, 3)) as response:
            assert response.content == b'ell'


def _endpoint(name):
    return f'{API_URL}/b2api/{API_VERSION}/{name}'


ACCESS_DENIED = {'status': 403, 'code': 'access_denied', 'message': 'no'}


class TestCopyRequests:
    @responses.activate
    def test_copy_file_sends_range_and_directive(self, raw_api):
        responses.post(
            _endpoint('b2_copy_file'),
            json={'fileId': 'file-2', 'action': 'copy'},
            match=(
                matchers.json_params_matcher(
                    {
                        'sourceFileId': 'file-1',
                        'fileName': 'copy.txt',
                        'range': 'bytes=0-99',
                        'metadataDirective': 'REPLACE',
                        'contentType': 'text/plain',
                        'fileInfo': {'color': 'red'},
                        'destinationBucketId': 'bucket-2',
                        'legalHold': 'on',
                    }
                ),
            ),
        )

        result = raw_api.copy_file(
            API_URL,
            'token',
            'file-1',
            'copy.txt',
            bytes_range=(0, 99),
            metadata_directive=MetadataDirectiveMode.REPLACE,
            content_type='text/plain',
            file_info={'color': 'red'},
            destination_bucket_id='bucket-2',
            legal_hold=LegalHold.ON,
        )

        assert result == {'fileId': 'file-2', 'action': 'copy'}

    @pytest.mark.parametrize(
        'metadata_directive,content_type,file_info',
        [
            (MetadataDirectiveMode.COPY, 'text/plain', None),
            (MetadataDirectiveMode.COPY, None, {'a': 'b'}),
            (MetadataDirectiveMode.REPLACE, None, {'a': 'b'}),
        ],
    )
    def test_copy_file_rejects_metadata_not_matching_directive(
        self, raw_api, metadata_directive, content_type, file_info
    ):
        with pytest.raises(InvalidMetadataDirective):
            raw_api.copy_file(
                API_URL,
                'token',
                'file-1',
                'copy.txt',
                metadata_directive=metadata_directive,
                content_type=content_type,
                file_info=file_info,
            )

    @responses.activate
    def test_copy_file_denied_means_wrong_customer_key(self, raw_api):
        responses.post(_endpoint('b2_copy_file'), status=403, json=ACCESS_DENIED)

        with pytest.raises(SSECKeyError):
            raw_api.copy_file(API_URL, 'token', 'file-1', 'copy.txt')

    @responses.activate
    def test_copy_part(self, raw_api):
        responses.post(
            _endpoint('b2_copy_part'),
            json={'partNumber': 3},
            match=(
                matchers.json_params_matcher(
                    {
                        'sourceFileId': 'file-1',
                        'largeFileId': 'large-1',
                        'partNumber': 3,
                        'range': 'bytes=100-199',
                    }
                ),
            ),
        )

        assert raw_api.copy_part(
            API_URL, 'token', 'file-1', 'large-1', 3, bytes_range=(100, 199)
        ) == {'partNumber': 3}


class TestListingRequests:
    @responses.activate
    def test_list_file_versions(self, raw_api):
        responses.get(
            _endpoint('b2_list_file_versions'),
            json={'files': [], 'nextFileName': None, 'nextFileId': None},
            match=(
                matchers.query_param_matcher(
                    {
                        'bucketId': 'bucket-1',
                        'startFileName': 'a',
                        'startFileId': 'file-9',
                        'maxFileCount': '10',
                    }
                ),
            ),
        )

        result = raw_api.list_file_versions(
            API_URL,
            'token',
            'bucket-1',
            start_file_name='a',
            start_file_id='file-9',
            max_file_count=10,
        )

        assert result['files'] == []

    @responses.activate
    def test_list_keys(self, raw_api):
        responses.get(
            _endpoint('b2_list_keys'),
            json={'keys': [], 'nextApplicationKeyId': None},
            match=(matchers.query_param_matcher({
                'accountId': 'account-1',
                'maxKeyCount': '5'
            }),),
        )

        assert raw_api.list_keys(API_URL, 'token', 'account-1', max_key_count=5) == {
            'keys': [],
            'nextApplicationKeyId': None
        }

    @responses.activate
    def test_list_parts(self, raw_api):
        responses.get(
            _endpoint('b2_list_parts'),
            json={'parts': [], 'nextPartNumber': None},
            match=(matchers.query_param_matcher({
                'fileId': 'large-1',
                'startPartNumber': '2'
            }),),
        )

        assert raw_api.list_parts(API_URL, 'token', 'large-1', start_part_number=2) == {
            'parts': [],
            'nextPartNumber': None
        }


class TestBucketRequests:
    @responses.activate
    def test_update_bucket(self, raw_api):
        responses.post(
            _endpoint('b2_update_bucket'),
            json={'bucketId': 'bucket-1', 'revision': 3},
            match=(
                matchers.json_params_matcher(
                    {
                        'accountId': 'account-1',
                        'bucketId': 'bucket-1',
                        'bucketType': 'allPublic',
                        'ifRevisionIs': 2,
                        'defaultServerSideEncryption': {
                            'mode': 'SSE-B2',
                            'algorithm': 'AES256'
                        },
                    }
                ),
            ),
        )

        result = raw_api.update_bucket(
            API_URL,
            'token',
            'account-1',
            'bucket-1',
            bucket_type='allPublic',
            if_revision_is=2,
            default_server_side_encryption=SSE_B2_AES,
        )

        assert result['revision'] == 3

    @responses.activate
    def test_update_bucket_revision_conflict(self, raw_api):
        responses.post(
            _endpoint('b2_update_bucket'),
            status=409,
            json={
                'status': 409,
                'code': 'conflict',
                'message': 'revision changed'
            },
        )

        with pytest.raises(Conflict):
            raw_api.update_bucket(
                API_URL, 'token', 'account-1', 'bucket-1', bucket_type='allPublic', if_revision_is=1
            )

    def test_update_bucket_rejects_customer_key_default(self, raw_api):
        sse_c = EncryptionSetting(
            mode=EncryptionMode.SSE_C,
            algorithm=EncryptionAlgorithm.AES256,
            key=EncryptionKey(secret=b'*' * 32),
        )

        with pytest.raises(WrongEncryptionModeForBucketDefault):
            raw_api.update_bucket(
                API_URL, 'token', 'account-1', 'bucket-1', default_server_side_encryption=sse_c
            )

    @responses.activate
    def test_notification_rules(self, raw_api):
        rule = {
            'name': 'uploads',
            'eventTypes': ['b2:ObjectCreated:*'],
            'isEnabled': True,
            'objectNamePrefix': '',
            'targetConfiguration': {
                'targetType': 'webhook',
                'url': 'https://example.com/hook'
            },
        }
        responses.post(
            _endpoint('b2_set_bucket_notification_rules'),
            json={
                'bucketId': 'bucket-1',
                'eventNotificationRules': [rule]
            },
            match=(
                matchers.json_params_matcher({
                    'bucketId': 'bucket-1',
                    'eventNotificationRules': [rule]
                }),
            ),
        )
        responses.get(
            _endpoint('b2_get_bucket_notification_rules'),
            json={
                'bucketId': 'bucket-1',
                'eventNotificationRules': [rule]
            },
            match=(matchers.query_param_matcher({'bucketId': 'bucket-1'}),),
        )

        assert raw_api.set_bucket_notification_rules(API_URL, 'token', 'bucket-1', [rule]) == [rule]
        assert raw_api.get_bucket_notification_rules(API_URL, 'token', 'bucket-1') == [rule]


class TestFileLockRequests:
    @responses.activate
    def test_update_file_retention(self, raw_api):
        responses.post(
            _endpoint('b2_update_file_retention'),
            json={'fileId': 'file-1'},
            match=(
                matchers.json_params_matcher(
                    {
                        'fileId': 'file-1',
                        'fileName': 'a.txt',
                        'fileRetention': {
                            'mode': 'governance',
                            'retainUntilTimestamp': 1700000000000
                        },
                        'bypassGovernance': True,
                    }
                ),
            ),
        )

        raw_api.update_file_retention(
            API_URL,
            'token',
            'file-1',
            'a.txt',
            FileRetentionSetting(RetentionMode.GOVERNANCE, 1700000000000),
            bypass_governance=True,
        )

    @responses.activate
    def test_update_file_retention_denied(self, raw_api):
        responses.post(_endpoint('b2_update_file_retention'), status=403, json=ACCESS_DENIED)

        with pytest.raises(RetentionWriteError):
            raw_api.update_file_retention(
                API_URL, 'token', 'file-1', 'a.txt',
                FileRetentionSetting(RetentionMode.COMPLIANCE, 1700000000000)
            )

    @responses.activate
    def test_update_file_legal_hold(self, raw_api):
        responses.post(
            _endpoint('b2_update_file_legal_hold'),
            json={'legalHold': 'off'},
            match=(
                matchers.json_params_matcher(
                    {
                        'fileId': 'file-1',
                        'fileName': 'a.txt',
                        'legalHold': 'off'
                    }
                ),
            ),
        )

        assert raw_api.update_file_legal_hold(
            API_URL, 'token', 'file-1', 'a.txt', LegalHold.OFF
        ) == {'legalHold': 'off'}


class TestDownloadAuthorizationRequest:
    @responses.activate
    def test_content_overrides_are_sent(self, raw_api):
        responses.post(
            _endpoint('b2_get_download_authorization'),
            json={'authorizationToken': 'download-token'},
            match=(
                matchers.json_params_matcher(
                    {
                        'bucketId': 'bucket-1',
                        'fileNamePrefix': 'public/',
                        'validDurationInSeconds': 3600,
                        'b2ContentDisposition': 'attachment',
                    }
                ),
            ),
        )

        result = raw_api.get_download_authorization(
            API_URL, 'token', 'bucket-1', 'public/', 3600, content_disposition='attachment'
        )

        assert result == {'authorizationToken': 'download-token'}
