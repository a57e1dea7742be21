import random
import shlex
import sys

import pytest

from webfuzz.core.models import PositionTuple
from webfuzz.inputs.command import Command
from webfuzz.inputs.generator import Generator
from webfuzz.inputs.wordlist import Wordlist
from webfuzz.core.errors import ConfigurationError


class SpyWordlist(Wordlist):
    """Wordlist that records every index it was asked for."""

    def __init__(self, words, keyword="FUZZ"):
        super().__init__(words, keyword=keyword)
        self.asked = []

    def value_at(self, index):
        self.asked.append(index)
        return super().value_at(index)


class Unbounded(Wordlist):
    def cardinality(self):
        return None


def wl(words, keyword="FUZZ"):
    return Wordlist(words, keyword=keyword)


def test_clusterbomb_total_is_product():
    gen = Generator("clusterbomb", [wl(["a", "b"], "A"), wl(["1", "2", "3"], "B"),
                                    wl(["x", "y"], "C")])
    assert gen.total() == 12


def test_clusterbomb_last_provider_varies_fastest():
    gen = Generator("clusterbomb", [wl(["a", "b"], "A"), wl(["1", "2", "3"], "B")])
    got = [(p.values["A"], p.values["B"]) for p in gen.positions()]
    assert got == [(b"a", b"1"), (b"a", b"2"), (b"a", b"3"),
                   (b"b", b"1"), (b"b", b"2"), (b"b", b"3")]


def test_clusterbomb_enumeration_is_gap_free_and_unique():
    gen = Generator("clusterbomb", [wl(list("abcd"), "A"), wl(list("123"), "B"),
                                    wl(list("xy"), "C")])
    combos = [tuple(p.values.values()) for p in gen.positions()]
    assert len(combos) == gen.total() == len(set(combos))
    assert gen.tuple_at(gen.total()) is None


def test_pitchfork_total_is_minimum():
    gen = Generator("pitchfork", [wl(list("abcde"), "A"), wl(list("123"), "B")])
    assert gen.total() == 3


def test_pitchfork_never_consults_past_shortest():
    long = SpyWordlist(list("abcde"), "A")
    short = SpyWordlist(list("123"), "B")
    gen = Generator("pitchfork", [long, short])
    got = [(p.values["A"], p.values["B"]) for p in gen.positions()]
    assert got == [(b"a", b"1"), (b"b", b"2"), (b"c", b"3")]
    assert 3 not in long.asked and 4 not in long.asked
    assert gen.tuple_at(3) is None
    assert 3 not in long.asked


def test_sniper_total_and_index_layout():
    gen = Generator("sniper", [Wordlist(list("abcd"), template="§")], markers=2)
    assert gen.total() == 8
    pos = gen.tuple_at(5)
    assert pos.marker == 1
    assert pos.values["FUZZ"] == b"b"   # 5 mod 4 == 1
    assert gen.tuple_at(8) is None


def test_tuple_at_is_pure_and_order_independent():
    gen = Generator("clusterbomb", [wl(list("abc"), "A"), wl(list("12345"), "B")])
    forward = [gen.tuple_at(i) for i in range(gen.total())]
    order = list(range(gen.total()))
    random.Random(7).shuffle(order)
    shuffled = {i: gen.tuple_at(i) for i in order}
    for i, pos in enumerate(forward):
        assert shuffled[i] == pos
        assert gen.tuple_at(i) == pos


def test_clusterbomb_first_provider_may_be_unbounded():
    gen = Generator("clusterbomb", [Unbounded(list("ab"), keyword="A"),
                                    wl(list("123"), "B")])
    assert gen.total() is None
    assert gen.tuple_at(4).values == {"A": b"b", "B": b"2"}
    assert gen.tuple_at(6) is None


def test_unknown_mode_rejected():
    with pytest.raises(ConfigurationError):
        Generator("battering-ram", [wl(["a"])])


def test_positions_start_offset():
    gen = Generator("clusterbomb", [wl(list("abcd"))])
    assert [p.index for p in gen.positions(start=2)] == [2, 3]


def python_cmd(script, **kw):
    return Command(f"{shlex.quote(sys.executable)} -c {shlex.quote(script)}", **kw)


def test_sniper_reads_command_to_the_end_before_addressing():
    cmd = python_cmd("print('a'); print('b'); print('c')", template="§")
    gen = Generator("sniper", [cmd], markers=2)
    assert gen.total() == 6
    first = [gen.tuple_at(i) for i in range(7)]
    assert first[3] == PositionTuple(index=3, values={"FUZZ": b"a"}, marker=1)
    assert first[6] is None
    assert [gen.tuple_at(i) for i in range(7)] == first
    cmd.close()


def test_sniper_rejects_source_of_unknown_size():
    with pytest.raises(ConfigurationError):
        Generator("sniper", [Unbounded(["a"], template="§")], markers=1)
