from __future__ import annotations

import re

from app.services.snapshot_provider import Requisition

FIRST_REQUISITION_NUMBER = 1000
REQUISITION_NUMBER_PREFIX = 'R-'

_NON_DIGITS = re.compile(r'[^0-9]')


def parse_requisition_number(value: str | None) -> int | None:
    digits = _NON_DIGITS.sub('', value or '')
    if not digits:
        return None
    return int(digits)


def next_requisition_number(requisitions: list[Requisition]) -> str:
    highest = 0
    for req in requisitions:
        number = parse_requisition_number(req.requisition_number)
        if number is not None and number > highest:
            highest = number
    if highest <= 0:
        return f'{REQUISITION_NUMBER_PREFIX}{FIRST_REQUISITION_NUMBER}'
    return f'{REQUISITION_NUMBER_PREFIX}{highest + 1}'
