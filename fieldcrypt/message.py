"""SOAP message model and target field lookup.

A message is an lxml tree rooted at a SOAP envelope. The first element child
of the Body is the operation wrapper, and its element children are the
operation's parameters in document order:

    <S:Envelope>
      <S:Body>
        <ns2:buyCart>              <- operation wrapper
          <cartId>c1</cartId>      <- field nodes
          <creditCardNr>...</creditCardNr>
        </ns2:buyCart>
      </S:Body>
    </S:Envelope>
"""

from typing import Iterator

from lxml import etree

from fieldcrypt.config import TargetSpec
from fieldcrypt.errors import ProtocolError

SOAP11_NS = "http://schemas.xmlsoap.org/soap/envelope/"
SOAP12_NS = "http://www.w3.org/2003/05/soap-envelope"
SOAP_NAMESPACES = (SOAP11_NS, SOAP12_NS)


def _new_parser() -> etree.XMLParser:
    # lxml parsers must not be shared between threads
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        huge_tree=False,
    )


def local_name(tag) -> str:
    """Strip the namespace from a tag, QName or Clark-notation string."""
    return etree.QName(tag).localname


def operation_name(operation: str | etree.QName | None) -> str:
    """Local part of the pipeline's operation metadata.

    Accepts ``buyCart``, ``ns2:buyCart``, ``{uri}buyCart`` or an lxml QName.

    Raises:
        ProtocolError: Operation metadata missing or blank
    """
    if isinstance(operation, etree.QName):
        return operation.localname
    if isinstance(operation, str):
        name = operation.rpartition("}")[2].rpartition(":")[2].strip()
        if name:
            return name
    raise ProtocolError("Operation metadata missing from message context")


class FieldNode:
    """Mutable view over one parameter element of an operation."""

    def __init__(self, element: etree._Element):
        self.element = element

    @property
    def name(self) -> str:
        return local_name(self.element)

    @property
    def value(self) -> str:
        return "".join(self.element.itertext())

    @value.setter
    def value(self, text: str) -> None:
        # Replaces all content, like DOM setTextContent
        for child in list(self.element):
            self.element.remove(child)
        self.element.text = text

    def __repr__(self) -> str:
        return f"FieldNode(name={self.name!r})"


class SOAPMessage:
    """A SOAP 1.1 or 1.2 envelope."""

    def __init__(self, envelope: etree._Element):
        self.envelope = envelope
        self.namespace = etree.QName(envelope).namespace
        if local_name(envelope) != "Envelope" or self.namespace not in SOAP_NAMESPACES:
            raise ProtocolError(f"Root element is not a SOAP envelope: {envelope.tag}")

    @classmethod
    def from_bytes(cls, data: bytes) -> "SOAPMessage":
        """Parse a serialized envelope."""
        try:
            root = etree.fromstring(data, parser=_new_parser())
        except etree.XMLSyntaxError as e:
            raise ProtocolError(f"Malformed SOAP message: {e}") from e
        return cls(root)

    def to_bytes(self) -> bytes:
        """Serialize the envelope as UTF-8."""
        return etree.tostring(self.envelope, encoding="utf-8", xml_declaration=False)

    def _child(self, name: str) -> etree._Element | None:
        return self.envelope.find(f"{{{self.namespace}}}{name}")

    @property
    def header(self) -> etree._Element | None:
        return self._child("Header")

    @property
    def body(self) -> etree._Element | None:
        return self._child("Body")

    @property
    def payload(self) -> etree._Element | None:
        """First element child of the Body (operation wrapper or Fault)."""
        body = self.body
        if body is None:
            return None
        return next(body.iterchildren(tag=etree.Element), None)

    @property
    def is_fault(self) -> bool:
        payload = self.payload
        return payload is not None and payload.tag == f"{{{self.namespace}}}Fault"

    def fields(self) -> Iterator[FieldNode]:
        """Iterate the parameter fields of the operation wrapper in document order.

        Raises:
            ProtocolError: Envelope has no Body or the Body is empty
        """
        if self.body is None:
            raise ProtocolError("SOAP envelope has no Body")
        payload = self.payload
        if payload is None:
            raise ProtocolError("SOAP Body has no operation element")
        for element in payload.iterchildren(tag=etree.Element):
            yield FieldNode(element)


class FieldLocator:
    """Finds the single field subject to transformation."""

    def locate(
        self,
        message: SOAPMessage,
        operation: str | etree.QName | None,
        target: TargetSpec,
    ) -> FieldNode | None:
        """Find the target field of a message.

        Args:
            message: Message to inspect
            operation: Operation name supplied by the pipeline (local name,
                prefixed name or Clark notation)
            target: Operation and field to look for

        Returns:
            First field named target.field, or None if the operation differs
            or the field is absent

        Raises:
            ProtocolError: Operation metadata missing, or the matching message
                lacks a Body or operation element
        """
        if operation_name(operation) != target.operation:
            return None

        for node in message.fields():
            if node.name == target.field:
                return node
        return None
