import re

_NON_DIGITS = re.compile(r"\D")


def clean_cpf(cpf: str | None) -> str:
    if not cpf:
        return ""
    return _NON_DIGITS.sub("", cpf)


def _check_digit(digits: str, weight_start: int) -> int:
    total = sum(int(d) * w for d, w in zip(digits, range(weight_start, 1, -1)))
    remainder = (total * 10) % 11
    return 0 if remainder == 10 else remainder


def validate_cpf(cpf: str | None) -> bool:
    """Valida os dígitos verificadores de um CPF (aceita com ou sem máscara)."""
    digits = clean_cpf(cpf)
    if len(digits) != 11:
        return False

    # Sequências repetidas (111.111.111-11) passam no cálculo mas não são válidas
    if digits == digits[0] * 11:
        return False

    if _check_digit(digits[:9], 10) != int(digits[9]):
        return False
    return _check_digit(digits[:10], 11) == int(digits[10])


def parse_cpf_list(raw: str | None) -> set[str]:
    """Lista de CPFs separados por vírgula, como salva em Tool.restricted_cpfs."""
    if not raw:
        return set()
    return {c for c in (clean_cpf(part) for part in raw.split(",")) if c}
