"""Typed view of XMPP stanzas.

parse_stanza() maps the ElementTree node of a stanza onto a fixed set of
variants keyed by tag name. Tags outside the table become
UnhandledStanza; a known tag whose payload is unusable raises StanzaError.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from xml.etree.ElementTree import Element

from jirc.core.errors import StanzaError

NS_DELAY = "urn:xmpp:delay"
NS_LEGACY_DELAY = "jabber:x:delay"
NS_MUC_USER = "http://jabber.org/protocol/muc#user"
NS_PING = "urn:xmpp:ping"


def local_name(tag: str) -> str:
    """Strip the {namespace} part of an ElementTree tag."""
    return tag.rpartition("}")[2]


def split_jid(jid: str) -> tuple[str, str]:
    """Split a JID into (bare, resource)."""
    bare, _, resource = jid.partition("/")
    return bare, resource


def _child(element: Element, name: str) -> Element | None:
    for child in element:
        if local_name(child.tag) == name:
            return child
    return None


@dataclass
class PresenceStanza:
    sender: str
    type: str
    room: str
    alias: str
    status_codes: frozenset[str] = field(default_factory=frozenset)


@dataclass
class MessageStanza:
    sender: str
    type: str
    body: str
    room: str
    alias: str
    delayed: bool = False


@dataclass
class IqStanza:
    id: str
    sender: str
    recipient: str
    type: str
    is_ping: bool = False


@dataclass
class UnhandledStanza:
    tag: str


Stanza = PresenceStanza | MessageStanza | IqStanza | UnhandledStanza


def _parse_presence(element: Element) -> PresenceStanza:
    sender = element.get("from", "")
    if not sender:
        raise StanzaError("presence without sender", code="missing_from")
    room, alias = split_jid(sender)
    codes: set[str] = set()
    x = element.find(f"{{{NS_MUC_USER}}}x")
    if x is not None:
        codes = {s.get("code", "") for s in x.findall(f"{{{NS_MUC_USER}}}status")}
    return PresenceStanza(
        sender=sender,
        type=element.get("type") or "available",
        room=room,
        alias=alias,
        status_codes=frozenset(codes - {""}),
    )


def _parse_message(element: Element) -> MessageStanza:
    sender = element.get("from", "")
    if not sender:
        raise StanzaError("message without sender", code="missing_from")
    room, alias = split_jid(sender)
    body_el = _child(element, "body")
    delayed = (
        element.find(f"{{{NS_DELAY}}}delay") is not None
        or element.find(f"{{{NS_LEGACY_DELAY}}}x") is not None
    )
    return MessageStanza(
        sender=sender,
        type=element.get("type") or "normal",
        body=(body_el.text or "") if body_el is not None else "",
        room=room,
        alias=alias,
        delayed=delayed,
    )


def _parse_iq(element: Element) -> IqStanza:
    iq_id = element.get("id")
    iq_type = element.get("type")
    if not iq_id or not iq_type:
        raise StanzaError("iq without id or type", code="invalid_iq", details={"id": iq_id, "type": iq_type})
    return IqStanza(
        id=iq_id,
        sender=element.get("from", ""),
        recipient=element.get("to", ""),
        type=iq_type,
        is_ping=element.find(f"{{{NS_PING}}}ping") is not None,
    )


_PARSERS: dict[str, Callable[[Element], Stanza]] = {
    "presence": _parse_presence,
    "message": _parse_message,
    "iq": _parse_iq,
}


def parse_stanza(element: Element) -> Stanza:
    """Classify a stanza element by tag name."""
    tag = local_name(element.tag)
    parser = _PARSERS.get(tag)
    if parser is None:
        return UnhandledStanza(tag=tag)
    return parser(element)
