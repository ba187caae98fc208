"""
Attestation wrapping for executed commands.

Every process the runner spawns can be routed through the witness binary,
which records an attestation for the step. Wrapping only changes argv; the
command's behaviour and output are the same as running it directly.
"""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from ..variables.booleans import parse_yaml_boolean

DEFAULT_FULCIO_URL = "https://fulcio.sigstore.dev"
DEFAULT_FULCIO_CLIENT_ID = "sigstore"
DEFAULT_FULCIO_OIDC_ISSUER = "https://oauth2.sigstore.dev/auth"
DEFAULT_TIMESTAMP_SERVER = "https://freetsa.org/tsr"

# Inputs that configure the runner itself and are never passed to wrapped actions
RUNNER_INPUTS = frozenset({
    'step', 'witness_version', 'action-ref',
    'archivista-server', 'attestations', 'command', 'version',
})


@dataclass
class WitnessOptions:
    """Options forwarded to `witness run`."""
    step: str = ""
    outfile: str = ""
    trace: str = ""
    attestations: List[str] = field(default_factory=list)
    enable_sigstore: bool = False
    fulcio: str = ""
    fulcio_oidc_client_id: str = ""
    fulcio_oidc_issuer: str = ""
    fulcio_token: str = ""
    timestamp_servers: str = ""
    enable_archivista: bool = False
    archivista_server: str = ""
    export_link: bool = False
    export_sbom: bool = False
    export_slsa: bool = False
    maven_pom: str = ""
    certificate: str = ""
    key: str = ""
    intermediates: List[str] = field(default_factory=list)
    product_include_glob: str = ""
    product_exclude_glob: str = ""
    spiffe_socket: str = ""

    @classmethod
    def from_inputs(cls, get: Callable[[str], Optional[str]]) -> 'WitnessOptions':
        """
        Build options from action-style inputs.

        Args:
            get: Returns the raw value of a named input, or None/'' if unset
        """
        def text(name: str) -> str:
            return (get(name) or '').strip()

        def flag(name: str, default: bool = False) -> bool:
            parsed = parse_yaml_boolean(text(name))
            return default if parsed is None else parsed

        def split(name: str) -> List[str]:
            return [item for item in text(name).split(' ') if item]

        step = text('step')
        outfile = text('outfile') or os.path.join(tempfile.gettempdir(), f"{step}-attestation.json")

        return cls(
            step=step,
            outfile=outfile,
            trace=text('witness_trace'),
            attestations=split('attestations'),
            enable_sigstore=flag('enable-sigstore'),
            fulcio=text('fulcio'),
            fulcio_oidc_client_id=text('fulcio-oidc-client-id'),
            fulcio_oidc_issuer=text('fulcio-oidc-issuer'),
            fulcio_token=text('fulcio-token'),
            timestamp_servers=text('timestamp-servers'),
            enable_archivista=flag('enable-archivista'),
            archivista_server=text('archivista-server'),
            export_link=flag('attestor-link-export'),
            export_sbom=flag('attestor-sbom-export'),
            export_slsa=flag('attestor-slsa-export'),
            maven_pom=text('attestor-maven-pom-path'),
            certificate=text('certificate'),
            key=text('key'),
            intermediates=split('intermediates'),
            product_include_glob=text('product-include-glob'),
            product_exclude_glob=text('product-exclude-glob'),
            spiffe_socket=text('spiffe-socket'),
        )


def _timestamp_flags(servers: str) -> List[str]:
    return [f"--timestamp-servers={ts.strip()}" for ts in servers.split(' ') if ts.strip()]


def assemble_witness_args(options: WitnessOptions, command: Sequence[str] = ()) -> List[str]:
    """Build `witness` arguments ending in `-- <command...>`."""
    cmd = ["run"]

    if options.enable_sigstore:
        cmd.append(f"--signer-fulcio-url={options.fulcio or DEFAULT_FULCIO_URL}")
        cmd.append(f"--signer-fulcio-oidc-client-id={options.fulcio_oidc_client_id or DEFAULT_FULCIO_CLIENT_ID}")
        cmd.append(f"--signer-fulcio-oidc-issuer={options.fulcio_oidc_issuer or DEFAULT_FULCIO_OIDC_ISSUER}")

        # CI runners that can mint id-tokens use them instead of ambient credentials
        if os.environ.get('ACTIONS_ID_TOKEN_REQUEST_URL') and os.environ.get('ACTIONS_ID_TOKEN_REQUEST_TOKEN'):
            cmd.append('--signer-oidc-disable-ambient')
            cmd.append('--signer-oidc-use-token-trust=true')

        servers = DEFAULT_TIMESTAMP_SERVER
        if options.timestamp_servers:
            servers += " " + options.timestamp_servers
        cmd.extend(_timestamp_flags(servers))
    else:
        cmd.append('--signers-no-verification=true')
        if options.timestamp_servers:
            cmd.extend(_timestamp_flags(options.timestamp_servers))

    for attestation in options.attestations:
        if attestation.strip():
            cmd.append(f"-a={attestation.strip()}")

    if options.export_link:
        cmd.append("--attestor-link-export")
    if options.export_sbom:
        cmd.append("--attestor-sbom-export")
    if options.export_slsa:
        cmd.append("--attestor-slsa-export")
    if options.maven_pom:
        cmd.append(f"--attestor-maven-pom-path={options.maven_pom}")

    if options.certificate:
        cmd.append(f"--certificate={options.certificate}")
    if options.enable_archivista:
        cmd.append("--enable-archivista=true")
    if options.archivista_server:
        cmd.append(f"--archivista-server={options.archivista_server}")
    if options.fulcio_token:
        cmd.append(f"--signer-fulcio-token={options.fulcio_token}")

    for intermediate in options.intermediates:
        if intermediate.strip():
            cmd.append(f"-i={intermediate.strip()}")

    if options.key:
        cmd.append(f"--key={options.key}")
    if options.product_exclude_glob:
        cmd.append(f"--attestor-product-exclude-glob={options.product_exclude_glob}")
    if options.product_include_glob:
        cmd.append(f"--attestor-product-include-glob={options.product_include_glob}")
    if options.spiffe_socket:
        cmd.append(f"--spiffe-socket={options.spiffe_socket}")
    if options.step:
        cmd.append(f"-s={options.step}")
    if options.trace:
        cmd.append(f"--trace={options.trace}")
    if options.outfile:
        cmd.append(f"--outfile={options.outfile}")

    return [*cmd, "--", *command]


class AttestationWrapper:
    """Routes commands through the witness binary when one is configured."""

    def __init__(self, witness_path: Optional[str] = None, options: Optional[WitnessOptions] = None):
        self.witness_path = witness_path
        self.options = options or WitnessOptions()

    @property
    def enabled(self) -> bool:
        return bool(self.witness_path)

    def wrap(self, argv: Sequence[str]) -> List[str]:
        if not self.enabled:
            return list(argv)
        return [str(self.witness_path), *assemble_witness_args(self.options, argv)]
