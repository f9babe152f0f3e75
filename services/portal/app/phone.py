from __future__ import annotations

import re


_NON_DIGIT = re.compile(r"\D")


def format_phone_number(phone: str | None) -> str:
    if not phone:
        return ""
    digits = _NON_DIGIT.sub("", phone)

    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    if len(digits) == 7:
        return f"{digits[:3]}-{digits[3:]}"
    if len(digits) > 11:
        country = digits[:-10]
        return f"+{country} {digits[-10:-7]} {digits[-7:-4]} {digits[-4:]}"

    # Unrecognised lengths: group in fours for readability.
    if len(digits) > 4:
        return " ".join(digits[i : i + 4] for i in range(0, len(digits), 4))
    return phone
