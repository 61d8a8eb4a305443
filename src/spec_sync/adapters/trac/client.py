"""XML-RPC client for Trac tickets.

Talks to the ``/login/rpc`` endpoint of the Trac XmlRpcPlugin with HTTP
basic auth over ``requests``.  Each thread gets its own session because
the adapter calls the client from worker threads.  Server faults surface
as ``xmlrpc.client.Fault``; HTTP failures as ``requests`` exceptions.
"""

import logging
import threading
import xmlrpc.client
from typing import Any
from xml.etree import ElementTree

import requests

from spec_sync.config import TracConnection

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 10000


class TracClient:
    def __init__(self, config: TracConnection, timeout=(10, 60)):
        self.config = config
        self.timeout = timeout
        self._thread_local = threading.local()
        self.rpc_url = self._get_rpc_url()

    @property
    def session(self) -> requests.Session:
        """Session for the current thread."""
        return self._get_session()

    def _get_rpc_url(self) -> str:
        return f"{self.config.trac_url.rstrip('/')}/login/rpc"

    def ticket_url(self, ticket_id: int) -> str:
        return f"{self.config.trac_url.rstrip('/')}/ticket/{ticket_id}"

    def _get_session(self) -> requests.Session:
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.auth = (self.config.username, self.config.password)
        session.verify = not self.config.insecure
        return session

    def _rpc_request(self, service: str, method: str, *params):
        """
        Make an XML-RPC request to the Trac server.
        """
        payload = xmlrpc.client.dumps(
            params, methodname=f"{service}.{method}", allow_none=True
        )
        response = self._get_session().post(
            self.rpc_url,
            data=payload,
            headers={"Content-Type": "text/xml"},
            timeout=self.timeout,
        )
        response.raise_for_status()

        tree = ElementTree.fromstring(response.content)
        fault = tree.find(".//fault")
        if fault is not None:
            code_element = fault.find('.//member[name="faultCode"]/value/int')
            string_element = fault.find(
                './/member[name="faultString"]/value/string'
            )
            fault_code = (
                int(code_element.text)
                if code_element is not None and code_element.text is not None
                else 0
            )
            fault_string = (
                string_element.text
                if string_element is not None
                and string_element.text is not None
                else "Unknown error"
            )
            raise xmlrpc.client.Fault(fault_code, fault_string)

        value_element = tree.find(".//param/value")
        if value_element is None:
            return None
        return self._parse_xmlrpc_value(value_element)

    def _parse_xmlrpc_value(self, element):
        """
        Recursively parse an XML-RPC value element.
        """
        if len(element) == 0:
            # Untyped <value>text</value> is a string
            return element.text or ""
        data_type = element[0].tag
        data_value = element[0].text

        match data_type:
            case "array":
                data_element = element.find("./array/data")
                if data_element is not None:
                    return [
                        self._parse_xmlrpc_value(v)
                        for v in data_element.findall("value")
                    ]
                return []
            case "struct":
                result = {}
                for member in element.find("struct").findall("member"):
                    name = member.find("name").text
                    result[name] = self._parse_xmlrpc_value(
                        member.find("value")
                    )
                return result
            case "int" | "i4":
                return int(data_value)
            case "boolean":
                return data_value == "1"
            case "string":
                return data_value or ""
            case "double":
                return float(data_value)
            case _:
                return data_value

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    def validate_connection(self) -> str:
        """
        Validate connection by calling system.getAPIVersion().
        Returns the API version string if successful.
        """
        version = self._rpc_request("system", "getAPIVersion")
        return str(version) if version is not None else ""

    def search_tickets(self, query: str) -> list[int]:
        """
        Run a Trac query string (``description~=foo&max=0``) and return
        the matching ticket ids.
        """
        return self._rpc_request("ticket", "query", query) or []

    def get_ticket(self, ticket_id: int) -> list[Any]:
        """
        Get ticket details: ``[id, created, modified, {attributes}]``.
        """
        return self._rpc_request("ticket", "get", ticket_id)

    def create_ticket(
        self,
        summary: str,
        description: str,
        ticket_type: str | None = None,
        attributes: dict[str, Any] | None = None,
        notify: bool = False,
    ) -> int:
        """
        Create a new ticket in Trac.

        Args:
            summary: Ticket title (required)
            description: Ticket body (required)
            ticket_type: Ticket type; defaults to the connection's type.
            attributes: Optional fields (keywords, owner, milestone...)
            notify: Send email notifications

        Returns:
            Ticket ID (int)

        Raises:
            ValueError: If summary or description is empty
            xmlrpc.client.Fault: If server validation fails or permissions denied
        """
        if not summary or not summary.strip():
            raise ValueError("Summary is required and cannot be empty")
        if not description or not description.strip():
            raise ValueError(
                "Description is required and cannot be empty"
            )

        attrs: dict[str, Any] = attributes.copy() if attributes else {}
        attrs["type"] = ticket_type or self.config.ticket_type

        result = self._rpc_request(
            "ticket", "create", summary, description, attrs, notify
        )
        return int(result)

    def update_ticket(
        self,
        ticket_id: int,
        comment: str = "",
        attributes: dict[str, Any] | None = None,
        notify: bool = False,
    ) -> list[Any]:
        """
        Update an existing ticket with optimistic locking.

        The current ``_ts`` is read first and sent back with the update,
        so a concurrent edit makes Trac reject this one.

        Raises:
            ValueError: If comment exceeds 10000 characters
            xmlrpc.client.Fault: If ticket not found, validation fails, or concurrent update
        """
        if comment and len(comment) > MAX_COMMENT_LENGTH:
            raise ValueError(
                "Comment exceeds maximum length of 10000 characters"
            )

        ticket_data = self._rpc_request("ticket", "get", ticket_id)
        if not isinstance(ticket_data, list) or len(ticket_data) < 4:
            raise ValueError("Invalid ticket data format from server")
        current_attrs = ticket_data[3]
        if not isinstance(current_attrs, dict):
            raise ValueError(
                "Invalid ticket attributes format from server"
            )

        update_attrs: dict[str, Any] = (
            attributes.copy() if attributes else {}
        )
        update_attrs["_ts"] = current_attrs["_ts"]
        # No workflow transition unless asked for
        update_attrs.setdefault("action", "leave")

        logger.debug("Updating ticket #%s", ticket_id)
        return self._rpc_request(
            "ticket", "update", ticket_id, comment, update_attrs, notify
        )

