"""
plangen - Markov workload model to execution plan compiler

Lowers a two-level workload model (session-layer EFSM of services, each
holding a protocol-layer EFSM of requests) into an execution plan tree and
writes the behavior-model matrices consumed by a Markov session controller.
"""

__version__ = '0.3.0'
