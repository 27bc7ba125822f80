######################################################################
#
# File: b2client/_internal/account_info/exception.py
#
# Copyright 2019 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

from abc import ABCMeta

from ..exception import B2Error


class AccountInfoError(B2Error, metaclass=ABCMeta):
    """Problems with the stored credentials of an account."""


class MissingAccountData(AccountInfoError):
    """
    The account is not authorized yet, or was cleared, so ``key`` is unknown.
    """

    def __init__(self, key: str):
        super().__init__()
        self.key = key

    def __str__(self):
        return f'Missing account data: {self.key}'
