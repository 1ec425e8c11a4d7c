def ordered_pair(user_a: int, user_b: int) -> tuple[int, int]:
    """Return the two ids as (low, high) so either orientation maps to one key."""
    return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


def pair_key(user_a: int, user_b: int) -> str:
    low, high = ordered_pair(user_a, user_b)
    return f"{low}:{high}"
