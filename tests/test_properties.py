import pytest

from app.domain.common.errors import InvalidNumber
from app.domain.roulette.properties import (
    RED_NUMBERS,
    color_of,
    is_valid_number,
    parity_of,
    properties_of,
)


@pytest.mark.parametrize(
    "n,color,parity",
    [
        (0, "Green", "None"),
        (1, "Red", "Odd"),
        (2, "Black", "Even"),
        (5, "Red", "Odd"),
        (10, "Black", "Even"),
        (19, "Red", "Odd"),
        (29, "Black", "Odd"),
        (32, "Red", "Even"),
        (36, "Red", "Even"),
    ],
)
def test_properties(n, color, parity):
    assert properties_of(n) == {"number": n, "color": color, "parity": parity}


def test_eighteen_red_numbers():
    assert len(RED_NUMBERS) == 18
    blacks = [n for n in range(1, 37) if color_of(n) == "Black"]
    assert len(blacks) == 18


@pytest.mark.parametrize("bad", [-1, 37, True, False, 1.0, "7", None])
def test_invalid_numbers(bad):
    assert not is_valid_number(bad)
    with pytest.raises(InvalidNumber):
        color_of(bad)
    with pytest.raises(ValueError):
        parity_of(bad)
