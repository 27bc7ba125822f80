######################################################################
#
# File: test/unit/conftest.py
#
# Copyright 2020 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from copy import copy

import pytest

from b2client.v1 import (
    ALL_CAPABILITIES,
    B2Client,
    B2Http,
    B2HttpApiConfig,
    B2RawHTTPApi,
    B2Session,
    InMemoryAccountInfo,
    RawSimulator,
)

pytest.register_assert_rewrite('test.unit')


@pytest.fixture
def fake_b2http(mocker):
    return mocker.MagicMock(name='FakeB2Http', spec=B2Http)


@pytest.fixture
def fake_b2_raw_api_responses():
    return {
        'authorize_account': {
            'accountId': '6012deadbeef',
            'apiInfo': {
                'groupsApi': {},
                'storageApi': {
                    'downloadUrl': 'https://f000.backblazeb2.xyz:8180',
                    'absoluteMinimumPartSize': 5000000,
                    'recommendedPartSize': 100000000,
                    'apiUrl': 'https://api000.backblazeb2.xyz:8180',
                    's3ApiUrl': 'https://s3.us-west-000.backblazeb2.xyz:8180',
                    'capabilities': copy(ALL_CAPABILITIES),
                    'namePrefix': None,
                    'bucketId': None,
                    'bucketName': None,
                    'infoType': 'storageApi',
                },
            },
            'applicationKeyExpirationTimestamp': None,
            'authorizationToken': '4_1111111111111111111111111_11111111_111111_1111_1111111111111_1111_11111111=',
        }
    }


@pytest.fixture
def fake_b2_raw_api(mocker, fake_b2http, fake_b2_raw_api_responses):
    raw_api = mocker.MagicMock(name='FakeB2RawHTTPApi', spec=B2RawHTTPApi)
    raw_api.b2_http = fake_b2http
    raw_api.authorize_account.return_value = fake_b2_raw_api_responses['authorize_account']
    return raw_api


@pytest.fixture
def fake_account_info(mocker):
    return mocker.MagicMock(name='FakeAccountInfo', spec=InMemoryAccountInfo)


@pytest.fixture
def fake_b2_session(fake_account_info, fake_b2_raw_api):
    session = B2Session(account_info=fake_account_info)
    session.raw_api = fake_b2_raw_api
    return session


@pytest.fixture
def raw_simulator():
    return RawSimulator()


@pytest.fixture
def simulator_api_config(raw_simulator):
    """
    Make every session built with this config talk to the same simulator.
    """
    return B2HttpApiConfig(_raw_api_class=lambda b2_http: raw_simulator)


@pytest.fixture
def account(raw_simulator):
    return raw_simulator.create_account()


@pytest.fixture
def b2_session(simulator_api_config, account):
    account_id, master_key = account
    session = B2Session(api_config=simulator_api_config)
    session.authorize_account('production', account_id, master_key)
    return session


@pytest.fixture
def bucket_id(b2_session, account):
    account_id, _ = account
    return b2_session.create_bucket(account_id, 'bucket1', 'allPrivate')['bucketId']


@pytest.fixture
def b2_client(simulator_api_config, account):
    account_id, master_key = account
    client = B2Client(
        account_id,
        master_key,
        api_config=simulator_api_config,
        max_upload_workers=2,
    )
    yield client
    client.close()
