# Copyright (c) 2020 The Bitcoin Core developers
# Copyright (c) 2021 Antoine Poinsot
# Distributed under the MIT software license, see the accompanying
# file LICENSE or http://www.opensource.org/licenses/mit-license.php.

from .errors import MiniscriptPropertyError


# (type/property, must_be, must_not_be)
CONFLICTS = [
    ("K", "u", ""),
    ("V", "", "du"),
    ("z", "", "o"),
    ("n", "", "z"),
]


class Property:
    """Miniscript expression type and correctness properties.

    Types: "B" base, "V" verify, "K" key, "W" wrapped.
    Properties: "z" zero-arg, "o" one-arg, "n" nonzero arg, "d" dissatisfiable, "u" unit.
    """

    types = "BVKW"
    props = "zondu"

    def __init__(self, property_str=""):
        """Create a property from a str of properties and types"""
        allowed = self.types + self.props
        invalid = set(property_str) - set(allowed)
        if invalid:
            raise MiniscriptPropertyError(
                f"Invalid property/type character(s) '{''.join(sorted(invalid))}'"
                f" (allowed: '{allowed}')"
            )

        self._set = frozenset(property_str)
        self.check_valid()

    def __getattr__(self, literal):
        if literal in Property.types or literal in Property.props:
            return literal in self._set
        raise AttributeError(literal)

    def __eq__(self, other):
        return isinstance(other, Property) and self._set == other._set

    def __hash__(self):
        return hash(self._set)

    def __repr__(self):
        return "".join(c for c in self.types + self.props if c in self._set)

    def has_all(self, properties):
        """Given a str of types and properties, return whether we have all of them"""
        return all(p in self._set for p in properties)

    def has_any(self, properties):
        """Given a str of types and properties, return whether we have at least one of them"""
        return any(p in self._set for p in properties)

    def check_valid(self):
        """Raises a MiniscriptPropertyError if the types/properties conflict"""
        if len(self.type()) != 1:
            raise MiniscriptPropertyError(
                f"A Miniscript fragment must be of a single type, got '{self.type()}'"
            )

        conflicts = []
        for (attr, must_be, must_not_be) in CONFLICTS:
            if attr not in self._set:
                continue
            if not self.has_all(must_be):
                conflicts.append(f"{attr} must be {must_be}")
            if self.has_any(must_not_be):
                conflicts.append(f"{attr} must not be {must_not_be}")
        if conflicts:
            raise MiniscriptPropertyError(
                f"Conflicting types and properties: {', '.join(conflicts)}"
            )

    def type(self):
        return "".join(c for c in self.types if c in self._set)

    def properties(self):
        return "".join(c for c in self.props if c in self._set)
