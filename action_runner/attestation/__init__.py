"""
Attestation wrapping for spawned commands.
"""

from .witness import AttestationWrapper, WitnessOptions, assemble_witness_args, RUNNER_INPUTS

__all__ = ['AttestationWrapper', 'WitnessOptions', 'assemble_witness_args', 'RUNNER_INPUTS']
