######################################################################
#
# File: test/unit/test_exception.py
#
# Copyright 2020 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import pytest

from b2client.v1.exception import (
    AccessDenied,
    AlreadyFailed,
    B2Error,
    BadJson,
    BadRequest,
    BadUploadUrl,
    BucketIdNotFound,
    CapExceeded,
    ClockSkew,
    Conflict,
    DuplicateBucketName,
    EmailNotVerified,
    FailedToReadFile,
    FileAlreadyHidden,
    FileNotPresent,
    InvalidAuthToken,
    InvalidJsonResponse,
    InvalidUploadOption,
    InvalidUserInput,
    MaxRetriesExceeded,
    MissingCapability,
    MissingPart,
    NoPaymentHistory,
    PartSha1Mismatch,
    ResourceNotFound,
    ServiceError,
    StorageCapExceeded,
    TooManyRequests,
    TransactionCapExceeded,
    Unauthorized,
    UnknownError,
    UnsatisfiableRange,
    UploadAborted,
    UploadAlreadyStarted,
    interpret_b2_error,
)


@pytest.mark.parametrize('message', ['message', '自由'])
def test_plain_error_message(message):
    assert str(B2Error(message)) == message


class TestMessages:
    @pytest.mark.parametrize(
        'error,expected',
        [
            (BadUploadUrl('foo'), 'Bad upload url: foo'),
            (AlreadyFailed('foo'), 'Already failed: foo'),
            (
                MissingCapability('writeFiles'),
                "Application key is missing the 'writeFiles' capability",
            ),
            (
                MaxRetriesExceeded(2, [ServiceError('500 a'), ServiceError('503 b')]),
                'FAILED to upload after 2 tries. Encountered exceptions: 500 a\n503 b',
            ),
            (ClockSkew(-30), 'ClockSkew: local clock is 30 seconds behind server'),
            (ClockSkew(700), 'ClockSkew; local clock is 700 seconds ahead of server'),
            (UploadAborted(), 'B2 upload failed, upload was aborted'),
            (UploadAlreadyStarted(), 'B2 upload failed, upload was already started'),
            (
                FailedToReadFile(OSError('disk on fire')),
                'B2 upload failed, failed to read file: disk on fire',
            ),
            (
                InvalidUploadOption('ConstantRetryStrategy', 'count', 0, 'at least 1'),
                'B2 upload failed, invalid options: ConstantRetryStrategy.count is 0, '
                'expected at least 1',
            ),
        ],
    )
    def test_str(self, error, expected):
        assert str(error) == expected

    def test_long_invalid_json_is_cut(self):
        error = InvalidJsonResponse(b'x' * 300)

        assert str(error) == 'Invalid json response: ' + 'x' * 200 + '...'
        assert error.content == b'x' * 300

    def test_invalid_upload_option_is_a_user_error(self):
        assert isinstance(InvalidUploadOption('a', 'b', 1, 'c'), InvalidUserInput)


@pytest.mark.parametrize(
    'error,retry_http,retry_upload',
    [
        (ServiceError('500 busy'), True, True),
        (TooManyRequests(), True, False),
        (BadUploadUrl('url'), False, True),
        (Unauthorized('nope', 'unauthorized'), False, True),
        (EmailNotVerified('nope', 'email_not_verified'), False, False),
        (BadRequest('nope', 'bad_request'), False, False),
        (MissingCapability('writeFiles'), False, False),
        (UploadAborted(), False, False),
    ],
)
def test_what_is_worth_a_retry(error, retry_http, retry_upload):
    assert error.should_retry_http() is retry_http
    assert error.should_retry_upload() is retry_upload


class TestInterpretError:
    @pytest.mark.parametrize(
        'status,code,expected_class',
        [
            (400, 'already_hidden', FileAlreadyHidden),
            (400, 'bad_json', BadJson),
            (400, 'no_such_file', FileNotPresent),
            (400, 'file_not_present', FileNotPresent),
            (400, 'duplicate_bucket_name', DuplicateBucketName),
            (400, 'missing_part', MissingPart),
            (400, 'part_sha1_mismatch', PartSha1Mismatch),
            (400, 'bad_bucket_id', BucketIdNotFound),
            (400, 'bad_value', BadRequest),
            (401, '', Unauthorized),
            (401, 'bad_auth_token', InvalidAuthToken),
            (401, 'expired_auth_token', InvalidAuthToken),
            (401, 'email_not_verified', EmailNotVerified),
            (401, 'no_payment_history', NoPaymentHistory),
            (403, 'storage_cap_exceeded', StorageCapExceeded),
            (403, 'transaction_cap_exceeded', TransactionCapExceeded),
            (403, 'access_denied', AccessDenied),
            (404, 'not_found', FileNotPresent),
            (404, None, ResourceNotFound),
            (409, '', Conflict),
            (416, 'range_not_satisfiable', UnsatisfiableRange),
            (429, '', TooManyRequests),
            (500, 'code', ServiceError),
            (503, 'service_unavailable', ServiceError),
            (499, 'code', UnknownError),
        ],
    )
    def test_class(self, status, code, expected_class):
        error = interpret_b2_error(status, code, 'message', {})

        assert type(error) is expected_class
        assert error.status == status

    @pytest.mark.parametrize(
        'status,code,post_params,expected',
        [
            (400, 'already_hidden', {'fileName': 'file.txt'}, 'File already hidden: file.txt'),
            (404, 'not_found', {'fileName': 'file.txt'}, 'File not present: file.txt'),
            (404, 'not_found', {'fileId': '01010101'}, 'File not present: 01010101'),
            (
                400,
                'duplicate_bucket_name',
                {'bucketName': 'my-bucket'},
                'Bucket name is already in use: my-bucket',
            ),
            (
                400,
                'missing_part',
                {'fileId': 'my-file-id'},
                'Part number has not been uploaded: my-file-id',
            ),
            (
                400,
                'part_sha1_mismatch',
                {'fileId': 'my-file-id'},
                'Part number my-file-id has wrong SHA1',
            ),
            (400, 'bad_bucket_id', {'bucketId': '1001'}, 'Bucket with id=1001 not found'),
            (404, None, None, 'No such file, bucket, or endpoint: '),
        ],
    )
    def test_message_uses_post_params(self, status, code, post_params, expected):
        assert str(interpret_b2_error(status, code, '', {}, post_params)) == expected

    def test_bad_request_keeps_code_and_message(self):
        error = interpret_b2_error(400, 'bad_value', 'file name too long', {})

        assert (error.code, error.message) == ('bad_value', 'file name too long')

    def test_invalid_auth_token_message(self):
        error = interpret_b2_error(401, 'expired_auth_token', 'expired', {})

        assert str(error) == 'Invalid authorization token. Server said: expired (expired_auth_token)'

    def test_caps_share_a_base(self):
        assert isinstance(interpret_b2_error(403, 'storage_cap_exceeded', '', {}), CapExceeded)
        assert isinstance(interpret_b2_error(403, 'transaction_cap_exceeded', '', {}), CapExceeded)

    @pytest.mark.parametrize('headers,expected', [({'retry-after': 200}, 200), ({}, None)])
    def test_retry_after(self, headers, expected):
        assert interpret_b2_error(429, '', '', headers).retry_after_seconds == expected

    @pytest.mark.parametrize(
        'status,expected',
        [(500, '500 code message'), (499, 'Unknown error: 499 code message')],
    )
    def test_status_code_and_message_are_kept(self, status, expected):
        assert str(interpret_b2_error(status, 'code', 'message', {})) == expected
