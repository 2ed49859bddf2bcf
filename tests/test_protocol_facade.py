# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for protocol metadata access on arbitrary objects."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Annotated

import pytest
from pydantic import BaseModel

from sdata._errors import UsageError
from sdata.content import (
    Collection,
    ProtocolInfo,
    ProtocolMember,
    ProtocolObject,
    ProtocolProperty,
    Resource,
    get_protocol_value,
    set_protocol_value,
)
from sdata.content.reflection import get_members, get_protocol_members


@dataclass
class Order:
    number: str
    key: Annotated[str | None, ProtocolMember()] = None
    version: Annotated[str | None, ProtocolMember(ProtocolProperty.ETAG)] = None


@dataclass(frozen=True)
class FrozenOrder:
    key: Annotated[str | None, ProtocolMember()] = None


class Invoice(BaseModel):
    total: int = 0
    url: Annotated[str | None, ProtocolMember()] = None


class Note:
    text: str = ""


class Ticket(ProtocolObject):
    def __init__(self, subject: str):
        self.subject = subject


class TestProtocolInfo:
    def test_lookup_normalizes_names(self):
        for name in ("$etag", "etag", "ETag", "e_tag"):
            assert ProtocolProperty.lookup(name) is ProtocolProperty.ETAG
        assert ProtocolProperty.lookup("$nothing") is None

    def test_wire_name(self):
        assert ProtocolProperty.TOTAL_RESULTS.wire_name == "$totalResults"

    def test_setting_none_removes(self):
        info = ProtocolInfo()
        info[ProtocolProperty.KEY] = "A1"
        assert ProtocolProperty.KEY in info
        info[ProtocolProperty.KEY] = None
        assert ProtocolProperty.KEY not in info
        assert info.key is None

    def test_copy_is_independent(self):
        info = ProtocolInfo(xml_local_name="Account")
        info.set_value(ProtocolProperty.KEY, "A1")
        copy = info.copy_info()
        copy.set_value(ProtocolProperty.KEY, "B2")
        assert info.key == "A1"
        assert copy.schema_name == "Account"


class TestFacade:
    """Reading and writing protocol properties on any object."""

    def test_native_carriers(self):
        resource = Resource({"Name": "Acme"})
        assert get_protocol_value(resource, ProtocolProperty.KEY) is None
        assert set_protocol_value(resource, ProtocolProperty.KEY, "A1")
        assert resource.info.key == "A1"
        assert get_protocol_value(resource, ProtocolProperty.KEY) == "A1"

        collection = Collection()
        set_protocol_value(collection, ProtocolProperty.TOTAL_RESULTS, 10)
        assert collection.info.get_value(ProtocolProperty.TOTAL_RESULTS) == 10

    def test_protocol_object_mixin(self):
        ticket = Ticket("help")
        assert ticket.info is None
        set_protocol_value(ticket, ProtocolProperty.URL, "http://x/tickets('1')")
        assert get_protocol_value(ticket, ProtocolProperty.URL) == "http://x/tickets('1')"

    def test_absent_before_set(self):
        order = Order("1")
        assert get_protocol_value(order, ProtocolProperty.KEY) is None
        assert set_protocol_value(order, ProtocolProperty.KEY, "O1")
        assert get_protocol_value(order, ProtocolProperty.KEY) == "O1"
        assert order.key == "O1"

    def test_explicit_property_marker(self):
        order = Order("1", version="v2")
        assert get_protocol_value(order, ProtocolProperty.ETAG) == "v2"

    def test_pydantic_member(self):
        invoice = Invoice(url="http://x/invoices('1')")
        assert get_protocol_value(invoice, ProtocolProperty.URL) == "http://x/invoices('1')"

    def test_no_backing_member(self):
        note = Note()
        assert get_protocol_value(note, ProtocolProperty.KEY) is None
        assert not set_protocol_value(note, ProtocolProperty.KEY, "N1")

    def test_read_only_member(self):
        assert not set_protocol_value(FrozenOrder(), ProtocolProperty.KEY, "F1")

    def test_none_object(self):
        with pytest.raises(UsageError):
            get_protocol_value(None, ProtocolProperty.KEY)
        with pytest.raises(UsageError):
            set_protocol_value(None, ProtocolProperty.KEY, "x")


class TestReflectionCache:
    def test_lookup_computed_once(self):
        first = get_protocol_members(Order)
        hits = get_protocol_members.cache_info().hits
        assert get_protocol_members(Order) is first
        assert get_protocol_members.cache_info().hits == hits + 1
        assert set(first) == {ProtocolProperty.KEY, ProtocolProperty.ETAG}

    def test_concurrent_population_is_consistent(self):
        @dataclass
        class Fresh:
            a: int = 0
            b: str = ""

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: get_members(Fresh), range(32)))
        assert all(r == results[0] for r in results)
        assert [m.name for m in results[0]] == ["a", "b"]
