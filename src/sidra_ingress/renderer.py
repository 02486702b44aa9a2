# ABOUTME: Ingress to nginx server block rendering for sidra-ingress-sync
# ABOUTME: Builds the CREATE/DELETE config records sent to the config applier

"""
Render Ingress records into nginx configuration text.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Pure functions, no I/O. Given one IngressRecord it produces one server
block, for example:

    server {
       listen 8080;
      server_name shop.example.com;
      location /api {
        proxy_pass http://satpam-service-app:8080;
        proxy_set_header ServiceName shop-svc;
        proxy_set_header ServicePort 80;
        proxy_set_header Host shop.example.com;
        proxy_set_header Plugins auth,ratelimit;
      }
    }

Every location proxies to the plugin hub. The Ingress's own backend is only
forwarded as the ServiceName/ServicePort headers, so the hub can route the
request after running the plugins listed in the annotation.

=============================================================================
EDGE CASES
=============================================================================

- No rules, or a first rule without a host: the server_name line is omitted.
- A rule without an `http` section contributes no location blocks; sibling
  rules still render.
- Missing plugin annotation: `proxy_set_header Plugins ;` (empty value).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from sidra_ingress.config import ProxySettings
    from sidra_ingress.utils.kube import IngressKey, IngressRecord

CREATE = "CREATE"
DELETE = "DELETE"


class NginxConfig(BaseModel):
    """
    One config record as posted to the applier.

    Wire format (JSON):
        {"namespace": "store", "ingress": "shop",
         "typeEvent": "CREATE", "config": "server {\\n..."}
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    namespace: str | None = Field(default=None, description="Ingress namespace")
    ingress: str = Field(description="Ingress name")
    type_event: Literal["CREATE", "DELETE"] = Field(
        alias="typeEvent",
        description="Whether the ingress appeared or disappeared",
    )
    config: str = Field(default="", description="Rendered nginx server block")

    def to_payload(self) -> dict[str, str | None]:
        """JSON body for the applier, using wire field names."""
        return self.model_dump(by_alias=True)


def render_server_block(record: IngressRecord, proxy: ProxySettings) -> str:
    """
    Render one Ingress into an nginx server block.

    Rules are processed in the order the API returned them, paths in their
    declared order. Output is byte-identical for identical input.

    Args:
        record: The Ingress to render
        proxy: Listen port, plugin hub target and plugin annotation key

    Returns:
        The server block, terminated by a newline.
    """
    plugins = record.annotations.get(proxy.plugins_annotation, "")
    hub_url = proxy.hub_url

    lines = ["server {", f"   listen {proxy.listen_port};"]
    if record.rules and record.rules[0].host:
        lines.append(f"  server_name {record.rules[0].host};")

    for rule in record.rules:
        if rule.paths is None:
            continue
        for path in rule.paths:
            lines.extend(
                [
                    f"  location {path.path} {{",
                    f"    proxy_pass {hub_url};",
                    f"    proxy_set_header ServiceName {path.service_name};",
                    f"    proxy_set_header ServicePort {path.service_port};",
                    f"    proxy_set_header Host {rule.host};",
                    f"    proxy_set_header Plugins {plugins};",
                    "  }",
                ]
            )

    lines.append("}")
    return "\n".join(lines) + "\n"


def build_create_config(record: IngressRecord, proxy: ProxySettings) -> NginxConfig:
    """Build the CREATE record carrying the rendered server block."""
    return NginxConfig(
        namespace=record.namespace or None,
        ingress=record.name,
        type_event=CREATE,
        config=render_server_block(record, proxy),
    )


def build_delete_config(key: IngressKey) -> NginxConfig:
    """
    Build the DELETE record for an Ingress that no longer exists.

    Only the identifying fields are sent. The config body is always empty.
    """
    return NginxConfig(
        namespace=key.namespace or None,
        ingress=key.name,
        type_event=DELETE,
        config="",
    )
