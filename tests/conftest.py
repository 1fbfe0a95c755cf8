from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from slotmath.spec import SymbolDefinition


@pytest.fixture
def catalog():
    return [
        SymbolDefinition(id="wild", name="Wild", rarity="epic", role="wild"),
        SymbolDefinition(id="scatter", name="Scatter", rarity="rare", role="scatter"),
        SymbolDefinition(id="pharaoh", name="Pharaoh", rarity="rare", high_tier=True),
        SymbolDefinition(id="anubis", name="Anubis", rarity="uncommon"),
        SymbolDefinition(id="ace", name="Ace", rarity="common"),
        SymbolDefinition(id="king", name="King", rarity="common"),
    ]


@pytest.fixture
def four_tier_catalog():
    return [
        SymbolDefinition(id="gem", name="Gem", rarity="epic"),
        SymbolDefinition(id="crown", name="Crown", rarity="rare"),
        SymbolDefinition(id="bell", name="Bell", rarity="uncommon"),
        SymbolDefinition(id="cherry", name="Cherry", rarity="common"),
    ]


@pytest.fixture
def rng():
    return random.Random(1234)
