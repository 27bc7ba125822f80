######################################################################
#
# File: test/unit/utils/test_utils.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import pytest

from b2client.v1 import (
    b2_url_decode,
    b2_url_encode,
    choose_part_ranges,
    hex_sha1_of_bytes,
)
from b2client._internal.utils import b64_of_bytes, camelcase_to_underscore, md5_of_bytes

# These are from the B2 Docs (https://www.backblaze.com/b2/docs/string_encoding.html)
ENCODING_TEST_CASES = [
    {'fullyEncoded': '%20', 'minimallyEncoded': '+', 'string': ' '},
    {'fullyEncoded': '%21', 'minimallyEncoded': '!', 'string': '!'},
    {'fullyEncoded': '%22', 'minimallyEncoded': '%22', 'string': '"'},
    {'fullyEncoded': '%23', 'minimallyEncoded': '%23', 'string': '#'},
    {'fullyEncoded': '%24', 'minimallyEncoded': '$', 'string': '$'},
    {'fullyEncoded': '%25', 'minimallyEncoded': '%25', 'string': '%'},
    {'fullyEncoded': '%26', 'minimallyEncoded': '&', 'string': '&'},
    {'fullyEncoded': '%2F', 'minimallyEncoded': '/', 'string': '/'},
    {'fullyEncoded': '%3F', 'minimallyEncoded': '%3F', 'string': '?'},
    {'fullyEncoded': '%7E', 'minimallyEncoded': '~', 'string': '~'},
    {'fullyEncoded': '%C3%A9', 'minimallyEncoded': '%C3%A9', 'string': 'é'},
    {'fullyEncoded': '%E8%87%AA%E7%94%B1', 'minimallyEncoded': '%E8%87%AA%E7%94%B1', 'string': '自由'},
]  # yapf: disable


class TestUrlEncoding:
    @pytest.mark.parametrize('test_case', ENCODING_TEST_CASES)
    def test_decode_both_encodings(self, test_case):
        string = test_case['string']
        assert string == b2_url_decode(test_case['fullyEncoded'])
        assert string == b2_url_decode(test_case['minimallyEncoded'])

    @pytest.mark.parametrize('test_case', ENCODING_TEST_CASES)
    def test_encode_is_decodable(self, test_case):
        string = test_case['string']
        assert string == b2_url_decode(b2_url_encode(string))

    def test_slash_is_kept(self):
        assert b2_url_encode('some dir/a b.txt') == 'some%20dir/a%20b.txt'


class TestChoosePartRanges:
    def test_exact_multiple(self):
        assert choose_part_ranges(30, 10) == [(0, 10), (10, 10), (20, 10)]

    def test_last_part_is_shorter(self):
        assert choose_part_ranges(25, 10) == [(0, 10), (10, 10), (20, 5)]

    def test_single_part(self):
        assert choose_part_ranges(7, 10) == [(0, 7)]

    def test_large(self):
        mib = 1024 * 1024
        ranges = choose_part_ranges(11 * mib, 5 * mib)

        assert ranges == [(0, 5 * mib), (5 * mib, 5 * mib), (10 * mib, mib)]
        assert sum(length for _, length in ranges) == 11 * mib


class TestDigests:
    def test_sha1(self):
        assert hex_sha1_of_bytes(b'hello') == 'aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d'

    def test_md5_and_base64(self):
        assert b64_of_bytes(md5_of_bytes(b'hello')) == 'XUFAKrxLKna5cZ2REBfFkg=='


@pytest.mark.parametrize(
    'camelcase,underscore', [
        ('FileNotPresent', 'file_not_present'),
        ('SSECKeyError', 'ssec_key_error'),
        ('UploadAborted', 'upload_aborted'),
    ]
)
def test_camelcase_to_underscore(camelcase, underscore):
    assert camelcase_to_underscore(camelcase) == underscore
