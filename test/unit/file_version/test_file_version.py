######################################################################
#
# File: test/unit/file_version/test_file_version.py
#
# Copyright 2021 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import io

import pytest

from b2client.v1 import (
    DownloadVersionFactory,
    EncryptionMode,
    FileIdAndName,
    FileVersionFactory,
    LegalHold,
)

UPLOAD_RESPONSE = {
    'accountId': '4aa9865d6f00',
    'action': 'upload',
    'bucketId': '547a2a395826655d561f0010',
    'contentLength': 1350,
    'contentSha1': '753ca1c2d0f3e8748320b38f5da057767029a036',
    'contentType': 'application/octet-stream',
    'fileId': '4_z547a2a395826655d561f0010_f106d4ca95f8b5b78_d20160104_m003906_c001_v0001013_t0005',
    'fileInfo': {
        'src_last_modified_millis': '1500111222000',
        'b2-cache-control': 'max-age=3600',
        'b2-content-disposition': 'attachment',
    },
    'fileName': 'randomdata',
    'serverSideEncryption': {
        'algorithm': 'AES256',
        'mode': 'SSE-B2'
    },
    'legalHold': {
        'isClientAuthorizedToRead': True,
        'value': 'on'
    },
    'uploadTimestamp': 1451444477000,
}


class TestFileVersionFactory:
    def test_from_upload_response(self):
        file_version = FileVersionFactory().from_api_response(UPLOAD_RESPONSE)

        assert file_version.id_ == UPLOAD_RESPONSE['fileId']
        assert file_version.file_name == 'randomdata'
        assert file_version.size == 1350
        assert file_version.action == 'upload'
        assert file_version.account_id == '4aa9865d6f00'
        assert file_version.bucket_id == '547a2a395826655d561f0010'
        assert file_version.get_content_sha1() == '753ca1c2d0f3e8748320b38f5da057767029a036'
        assert file_version.server_side_encryption.mode == EncryptionMode.SSE_B2
        assert file_version.legal_hold == LegalHold.ON
        assert file_version.mod_time_millis == 1500111222000
        assert file_version.cache_control == 'max-age=3600'
        assert file_version.content_disposition == 'attachment'
        assert file_version.expires is None

    def test_from_hide_response(self):
        file_version = FileVersionFactory().from_api_response(
            {
                'action': 'hide',
                'fileId': 'file-1',
                'fileName': 'randomdata',
                'size': 0,
                'uploadTimestamp': 1451444477000,
            }
        )

        assert file_version.action == 'hide'
        assert file_version.size == 0
        assert file_version.mod_time_millis == 1451444477000
        assert file_version.server_side_encryption.mode == EncryptionMode.NONE

    def test_large_file_has_no_sha1(self):
        file_version = FileVersionFactory().from_api_response(
            dict(UPLOAD_RESPONSE, contentSha1='none')
        )

        assert file_version.content_sha1 is None
        assert file_version.get_content_sha1() is None
        assert 'contentSha1' not in file_version.as_dict()

    def test_no_size(self):
        response = dict(UPLOAD_RESPONSE)
        del response['contentLength']

        with pytest.raises(ValueError):
            FileVersionFactory().from_api_response(response)

    def test_as_dict(self):
        result = FileVersionFactory().from_api_response(UPLOAD_RESPONSE).as_dict()

        assert result['fileId'] == UPLOAD_RESPONSE['fileId']
        assert result['size'] == 1350
        assert result['action'] == 'upload'
        assert result['contentType'] == 'application/octet-stream'
        assert result['legalHold'] == 'on'
        assert result['serverSideEncryption'] == {'algorithm': 'AES256', 'mode': 'SSE-B2'}

    def test_equality_ignores_the_client(self, mocker):
        first = FileVersionFactory(mocker.sentinel.client).from_api_response(UPLOAD_RESPONSE)
        second = FileVersionFactory().from_api_response(UPLOAD_RESPONSE)
        changed = FileVersionFactory().from_api_response(dict(UPLOAD_RESPONSE, fileName='other'))

        assert first == second
        assert first != changed


class TestDownloadVersionFactory:
    def test_range_and_size(self):
        assert DownloadVersionFactory.range_and_size_from_header('bytes 0-99/1000') == ((0, 99), 1000)

    @pytest.mark.parametrize('header', ['bytes 0-99', 'bytes */1000', 'items 0-1/2'])
    def test_invalid_range(self, header):
        with pytest.raises(ValueError):
            DownloadVersionFactory.range_and_size_from_header(header)

    def test_file_info_and_remaining_headers(self):
        headers = {
            'x-bz-file-id': 'file-1',
            'x-bz-file-name': 'some%20dir/a%20b.txt',
            'x-bz-upload-timestamp': '5000',
            'x-bz-content-sha1': 'none',
            'content-length': '7',
            'X-Bz-Info-color': 'sky%20blue',
            'X-Bz-Info-src_last_modified_millis': '1500111222000',
            'Content-Language': 'en',
            'x-bz-something-new': 'yes',
        }

        download_version = DownloadVersionFactory().from_response_headers(headers)

        assert download_version.file_name == 'some dir/a b.txt'
        assert download_version.file_info == {
            'color': 'sky blue',
            'src_last_modified_millis': '1500111222000',
        }
        assert download_version.mod_time_millis == 1500111222000
        assert download_version.content_language == 'en'
        assert download_version.range_ == (0, 6)
        assert download_version.remaining_headers == {'x-bz-something-new': 'yes'}


class TestFileVersionWithClient:
    @pytest.fixture
    def file_version(self, b2_client, bucket_id):
        upload = b2_client.create_upload(io.BytesIO(b'nothing'), 'test_file', bucket_id)
        upload.start()
        return upload.file_version

    def test_get_fresh_state(self, file_version):
        assert file_version.get_fresh_state() == file_version

    def test_delete(self, b2_client, bucket_id, file_version):
        result = file_version.delete()

        assert result == FileIdAndName(file_version.id_, 'test_file')
        assert result.as_dict() == {
            'action': 'delete',
            'fileId': file_version.id_,
            'fileName': 'test_file'
        }
        assert list(b2_client.ls(bucket_id)) == [[]]
