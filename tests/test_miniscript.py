import pytest

from bitcoin_descriptors import compile_miniscript, expand_miniscript
from bitcoin_descriptors.miniscript import (
    MiniscriptMalformed,
    MiniscriptTypeError,
    check_sane,
    compile_node,
    miniscript_from_expanded,
    miniscript_from_str,
)

from test_utils import hash160, pubkey, sha256


A, B, C = (pubkey(i).hex() for i in range(1, 4))
H256 = sha256(b"\x42" * 32).hex()
H160 = hash160(b"\x42" * 32).hex()


def compile_str(miniscript):
    return compile_node(expand_miniscript(miniscript).node).hex()


def test_expansion():
    expanded = expand_miniscript(f"or_d(pk({A}),and_v(v:pkh({B}),older(144)))")
    assert expanded.expanded_miniscript == "or_d(pk(@0),and_v(v:pkh(@1),older(144)))"
    assert list(expanded.expansion_map) == ["@0", "@1"]
    assert expanded.expansion_map["@0"].bytes() == pubkey(1)
    assert expanded.expansion_map["@1"].bytes() == pubkey(2)

    # The same key expression is expanded to the same placeholder
    expanded = expand_miniscript(f"or_i(pk({A}),and_v(v:pk({B}),pk({A})))")
    assert expanded.expanded_miniscript == "or_i(pk(@0),and_v(v:pk(@1),pk(@0)))"
    assert len(expanded.expansion_map) == 2

    # Placeholders are numbered in order of first occurrence
    expanded = expand_miniscript(f"multi(2,{C},{A},{B})")
    assert expanded.expanded_miniscript == "multi(2,@0,@1,@2)"
    assert expanded.expansion_map["@0"].bytes() == pubkey(3)


@pytest.mark.parametrize(
    "miniscript, expected",
    [
        (f"and_v(vc:pk_k({A}),c:pk_h({B}))", "and_v(v:pk(@0),pkh(@1))"),
        (f"c:pk_k({A})", "pk(@0)"),
        (f"thresh(2,pk({A}),s:pk({B}),snl:older(12))", "thresh(2,pk(@0),s:pk(@1),snl:older(12))"),
        (f"t:or_c(pk({A}),v:pk({B}))", "t:or_c(pk(@0),v:pk(@1))"),
        (f"and_b(pk({A}),sdv:older(7))", "and_b(pk(@0),sdv:older(7))"),
        (f"and_n(pk({A}),pk({B}))", "and_n(pk(@0),pk(@1))"),
        (f"or_i(pk({A}),0)", "or_i(pk(@0),0)"),
        (f"sortedmulti(1,{B},{A})", "sortedmulti(1,@0,@1)"),
        (
            f"andor(pk({A}),or_i(and_v(v:pkh({B}),hash160({H160})),older(1008)),pk({C}))",
            f"andor(pk(@0),or_i(and_v(v:pkh(@1),hash160({H160})),older(1008)),pk(@2))",
        ),
        (
            f"or_d(pk({A}),j:and_v(v:pk({B}),older(5)))",
            "or_d(pk(@0),j:and_v(v:pk(@1),older(5)))",
        ),
    ],
)
def test_expanded_representation(miniscript, expected):
    expanded = expand_miniscript(miniscript)
    assert expanded.expanded_miniscript == expected
    # The expanded Miniscript parses back to the same fragments
    node = miniscript_from_expanded(expected, expanded.expansion_map)
    assert str(node) == expected
    assert node.script == expanded.node.script


def test_types():
    def ms_type(miniscript):
        return str(expand_miniscript(miniscript).node.p)

    assert ms_type(f"pk({A})") == "Bondu"
    assert ms_type(f"pkh({A})") == "Bndu"
    assert ms_type(f"pk_k({A})") == "Kondu"
    assert ms_type("older(144)") == "Bz"
    assert ms_type(f"sha256({H256})") == "Bondu"
    assert ms_type(f"multi(1,{A},{B})") == "Bndu"
    assert ms_type(f"v:pk({A})") == "Von"
    assert ms_type(f"and_v(v:pk({A}),older(144))") == "Bon"
    assert ms_type(f"s:pk({A})") == "Wdu"
    assert ms_type(f"a:pk({A})") == "Wdu"


def test_compilation():
    assert compile_str(f"pk({A})") == f"21{A}ac"
    assert compile_str(f"pkh({A})") == f"76a914{hash160(pubkey(1)).hex()}88ac"
    assert compile_str(f"and_v(v:pk({A}),pk({B}))") == f"21{A}ad21{B}ac"
    assert compile_str(f"multi(2,{A},{B},{C})") == f"5221{A}21{B}21{C}53ae"
    assert compile_str(f"and_v(v:pk({A}),older(144))") == f"21{A}ad029000b2"
    assert compile_str(f"and_v(v:pk({A}),after(500000001))") == f"21{A}ad040165cd1db1"
    assert compile_str(f"and_v(v:pk({A}),sha256({H256}))") == f"21{A}ad82012088a820{H256}87"
    assert compile_str(f"or_d(pk({A}),pk({B}))") == f"21{A}ac736421{B}ac68"
    assert compile_str(f"or_i(pk({A}),pk({B}))") == f"6321{A}ac6721{B}ac68"
    assert compile_str(f"or_b(pk({A}),s:pk({B}))") == f"21{A}ac7c21{B}ac9b"
    assert compile_str(f"and_b(pk({A}),a:pk({B}))") == f"21{A}ac6b21{B}ac6c9a"
    assert compile_str(f"andor(pk({A}),pk({B}),pk({C}))") == f"21{A}ac6421{C}ac6721{B}ac68"
    assert compile_str(f"thresh(2,pk({A}),s:pk({B}),s:pk({C}))") == (
        f"21{A}ac7c21{B}ac937c21{C}ac935287"
    )

    # Keys of a sortedmulti are sorted in the Script
    keys = sorted([pubkey(3), pubkey(1), pubkey(2)])
    assert compile_str(f"sortedmulti(2,{C},{A},{B})") == compile_str(
        "multi(2,{},{},{})".format(*(k.hex() for k in keys))
    )


def test_verify_merging():
    # The VERIFY is merged in the opcode it follows when there is a VERIFY version of it
    assert compile_str(f"and_v(v:multi(1,{A},{B}),pk({C}))") == f"5121{A}21{B}52af21{C}ac"
    assert compile_str(f"and_v(v:sha256({H256}),pk({A}))") == f"82012088a820{H256}8821{A}ac"
    assert compile_str(f"and_v(v:older(1),pk({A}))") == f"51b26921{A}ac"
    assert compile_str(f"and_v(v:pkh({A}),pk({B}))") == (
        f"76a914{hash160(pubkey(1)).hex()}88ad21{B}ac"
    )


def test_compile_expanded_miniscript():
    expanded = expand_miniscript(f"or_d(pk({A}),and_v(v:pk({B}),older(1000)))")
    script = compile_miniscript(expanded.expanded_miniscript, expanded.expansion_map)
    assert script == compile_node(expanded.node)
    # Deterministic
    assert script == compile_miniscript(expanded.expanded_miniscript, expanded.expansion_map)

    with pytest.raises(MiniscriptMalformed, match="Unknown key placeholder"):
        compile_miniscript("pk(@2)", expanded.expansion_map)


@pytest.mark.parametrize(
    "miniscript",
    [
        f"and_v(pk({A}),pk({B}))",
        f"or_b(pk({A}),pk({B}))",
        f"v:pk_k({A})",
        "c:older(1)",
        f"thresh(1,pk({A}),pk({B}))",
        f"or_i(pk({A}),v:pk({B}))",
        f"andor(older(1),pk({A}),pk({B}))",
        "s:older(1)",
    ],
)
def test_type_errors(miniscript):
    with pytest.raises(MiniscriptTypeError, match="Invalid argument type"):
        expand_miniscript(miniscript)


@pytest.mark.parametrize(
    "miniscript",
    [
        "",
        f"and_v(v:pk({A}))",
        f"and_v(v:pk({A}),pk({B}),pk({C}))",
        "older(0)",
        "after(2147483648)",
        "older(x)",
        "older(-1)",
        "sha256(abcd)",
        f"hash160({H256})",
        f"multi(3,{A},{B})",
        "multi(1)",
        f"thresh(0,pk({A}))",
        f"foo({A})",
        f"x:pk({A})",
        f"pk({A}))",
        f"pk({A}",
        "pk()",
        "pk(notakey)",
        f"pk({A},{B})",
        f"and_v(v:pk({A})pk({B}))",
    ],
)
def test_malformed(miniscript):
    with pytest.raises(MiniscriptMalformed):
        expand_miniscript(miniscript)


def test_sanity_checks():
    def sanity(miniscript):
        check_sane(expand_miniscript(miniscript).node)

    sanity(f"or_d(pk({A}),and_v(v:pk({B}),older(1000)))")
    sanity(f"or_i(and_v(v:after(100),pk({A})),and_v(v:after(500000001),pk({B})))")

    with pytest.raises(MiniscriptTypeError, match="not of type 'B'"):
        sanity(f"v:pk({A})")
    with pytest.raises(MiniscriptTypeError, match="malleable"):
        sanity(f"or_d(sha256({H256}),pk({A}))")
    with pytest.raises(MiniscriptTypeError, match="require a signature"):
        sanity("older(144)")
    with pytest.raises(MiniscriptTypeError, match="require a signature"):
        sanity(f"or_i(pk({A}),older(1))")
    with pytest.raises(MiniscriptTypeError, match="mixed timelock"):
        sanity(f"and_v(v:after(100),and_v(v:after(500000001),pk({A})))")
    with pytest.raises(MiniscriptTypeError, match="duplicate keys"):
        sanity(f"and_v(v:pk({A}),pk({A}))")
    with pytest.raises(MiniscriptTypeError, match="duplicate keys"):
        sanity(f"or_i(pk({A}),multi(1,{B},{A}))")

    # The same checks happen on compilation
    with pytest.raises(MiniscriptTypeError):
        compile_str("older(144)")


def test_timelock_mix():
    def no_mix(miniscript):
        return miniscript_from_str(miniscript, None).no_timelock_mix

    assert no_mix("after(100)")
    assert no_mix("after(1000000000)")
    assert not no_mix("and_b(after(100),a:after(1000000000))")
    assert not no_mix("and_v(v:after(1000000000),after(100))")
    assert not no_mix("and_n(ndv:after(100),after(1000000000))")
    assert not no_mix("andor(ndv:after(100),after(1000000000),after(1))")
    assert no_mix("andor(ndv:after(100),after(1),after(1000000000))")
    assert no_mix("or_b(dv:after(100),adv:after(1000000000))")
    assert no_mix("or_c(ndv:after(100),v:after(1000000000))")
    assert no_mix("or_d(ndv:after(100),after(1000000000))")
    assert no_mix("or_i(after(100),after(1000000004))")
    assert no_mix("thresh(1,ndv:after(1000000007),andv:after(12))")
    assert not no_mix("thresh(2,ndv:after(1000000007),andv:after(12))")
    assert not no_mix("thresh(2,ndv:after(12),andv:after(1000000007),andv:after(3))")

    # Relative timelocks: the type flag is bit 22
    assert no_mix("older(100)")
    assert no_mix("or_i(older(100),older(4194304))")
    assert not no_mix("and_v(v:older(100),older(4194304))")
    assert not no_mix("and_b(older(4194304),a:older(100))")

    # Absolute and relative timelocks don't conflict with each other
    assert no_mix("and_v(v:after(1000000000),older(100))")

    # A sub with a height in a branch and a time in another only conflicts with
    # the other subs of its spending paths
    assert no_mix("or_i(after(100),after(500000001))")
    assert no_mix("and_v(v:or_i(after(100),after(500000001)),older(10))")
    assert no_mix("and_v(v:andor(ndv:after(1),after(100),after(500000001)),older(4194304))")
    assert not no_mix("and_b(or_i(after(100),after(500000001)),a:after(200))")
    assert not no_mix("and_v(v:or_i(after(100),after(500000001)),after(500000002))")
    # The mix of a sub is carried upward
    assert not no_mix("or_i(and_v(v:after(100),after(500000001)),after(1))")


def test_timelock_branches_are_sane():
    for miniscript in [
        f"and_v(v:andor(pk({A}),after(100),after(500000001)),pk({B}))",
        f"and_v(v:or_i(and_v(v:pk({A}),after(100)),and_v(v:pk({C}),after(500000001))),pk({B}))",
        f"andor(pk({A}),older(10),and_v(v:pk({B}),older(4194314)))",
    ]:
        node = expand_miniscript(miniscript).node
        assert node.no_timelock_mix
        check_sane(node)
        compile_node(node)
