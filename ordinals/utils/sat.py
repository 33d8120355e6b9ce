"""
Satoshi ordinal arithmetic.

Every satoshi is numbered in the order it was mined. Its position relative to
the subsidy schedule gives the block that created it, the halving epoch, the
difficulty adjustment period and the rarity class.
"""

import enum
from typing import List

COIN_VALUE = 100_000_000
SUBSIDY_HALVING_INTERVAL = 210_000
DIFFCHANGE_INTERVAL = 2016
CYCLE_EPOCHS = 6
INITIAL_SUBSIDY = 50 * COIN_VALUE
EPOCH_COUNT = 34


class SatRarity(str, enum.Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"


def epoch_subsidy(epoch: int) -> int:
    """Block subsidy in satoshis during a halving epoch"""
    if epoch >= 64:
        return 0
    return INITIAL_SUBSIDY >> epoch


def _starting_sats() -> List[int]:
    starting = [0]
    for epoch in range(EPOCH_COUNT - 1):
        starting.append(starting[-1] + epoch_subsidy(epoch) * SUBSIDY_HALVING_INTERVAL)
    return starting


STARTING_SATS = _starting_sats()
SUPPLY = STARTING_SATS[-1]
LAST_SAT = SUPPLY - 1


class Sat:
    """A single satoshi identified by its ordinal number"""

    def __init__(self, ordinal: int):
        if not isinstance(ordinal, int) or isinstance(ordinal, bool):
            raise ValueError(f"Invalid sat ordinal: {ordinal!r}")
        if ordinal < 0 or ordinal > LAST_SAT:
            raise ValueError(f"Sat ordinal out of range: {ordinal}")
        self.ordinal = ordinal

    def __repr__(self):
        return f"Sat({self.ordinal})"

    def __eq__(self, other):
        return isinstance(other, Sat) and other.ordinal == self.ordinal

    def __hash__(self):
        return hash(self.ordinal)

    @property
    def epoch(self) -> int:
        for epoch in range(EPOCH_COUNT - 1, -1, -1):
            if self.ordinal >= STARTING_SATS[epoch]:
                return epoch
        return 0

    @property
    def epoch_position(self) -> int:
        return self.ordinal - STARTING_SATS[self.epoch]

    @property
    def height(self) -> int:
        """Height of the coinbase that created this sat"""
        epoch = self.epoch
        return epoch * SUBSIDY_HALVING_INTERVAL + self.epoch_position // epoch_subsidy(epoch)

    @property
    def third(self) -> int:
        """Offset of the sat within its block's subsidy"""
        return self.epoch_position % epoch_subsidy(self.epoch)

    @property
    def cycle(self) -> int:
        return self.height // (CYCLE_EPOCHS * SUBSIDY_HALVING_INTERVAL)

    @property
    def period(self) -> int:
        return self.height // DIFFCHANGE_INTERVAL

    @property
    def degree(self) -> str:
        height = self.height
        return "{}°{}′{}″{}‴".format(
            self.cycle,
            height % SUBSIDY_HALVING_INTERVAL,
            height % DIFFCHANGE_INTERVAL,
            self.third,
        )

    @property
    def decimal(self) -> str:
        return f"{self.height}.{self.third}"

    @property
    def name(self) -> str:
        x = SUPPLY - self.ordinal
        letters = []
        while x > 0:
            letters.append("abcdefghijklmnopqrstuvwxyz"[(x - 1) % 26])
            x = (x - 1) // 26
        return "".join(reversed(letters))

    @property
    def percentile(self) -> str:
        return f"{self.ordinal / LAST_SAT * 100}%"

    @property
    def rarity(self) -> SatRarity:
        height = self.height
        hour = self.cycle
        minute = height % SUBSIDY_HALVING_INTERVAL
        second = height % DIFFCHANGE_INTERVAL
        third = self.third

        if hour == 0 and minute == 0 and second == 0 and third == 0:
            return SatRarity.MYTHIC
        if minute == 0 and second == 0 and third == 0:
            return SatRarity.LEGENDARY
        if minute == 0 and third == 0:
            return SatRarity.EPIC
        if second == 0 and third == 0:
            return SatRarity.RARE
        if third == 0:
            return SatRarity.UNCOMMON
        return SatRarity.COMMON


def sat_rarity(ordinal: int) -> SatRarity:
    """Rarity class of the sat with the given ordinal number"""
    return Sat(ordinal).rarity


def first_sat_of_block(height: int) -> int:
    """Ordinal of the first sat created by the coinbase at height"""
    epoch = min(height // SUBSIDY_HALVING_INTERVAL, EPOCH_COUNT - 1)
    return STARTING_SATS[epoch] + (height - epoch * SUBSIDY_HALVING_INTERVAL) * epoch_subsidy(epoch)
