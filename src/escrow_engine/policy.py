"""Authorization rules for escrow spend transitions.

The policy is derived read-only from the datum terms. It answers two
questions before any transaction is assembled: may this signer set perform the
action, and does the intended validity interval sit on the correct side of
the deadline.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .errors import ErrorCode, EscrowError
from .types import (
    EscrowAction,
    EscrowInstance,
    EscrowTerms,
    Role,
    ValidityInterval,
)

_QUORUM_ACTIONS = frozenset({EscrowAction.RELEASE, EscrowAction.REFUND})


class AuthorizationPolicy:
    """Role registry plus quorum and deadline rules for one set of terms."""

    def __init__(self, terms: EscrowTerms):
        self.terms = terms
        registry: dict[Role, tuple[bytes, ...]] = {
            Role.DEPOSITOR: (bytes(terms.depositor),),
            Role.BENEFICIARY: (bytes(terms.beneficiary),),
            Role.AUTHORIZED: tuple(bytes(k) for k in terms.authorized_keys),
            Role.FEE_RECIPIENT: (),
        }
        if terms.fee_policy.fee_recipient is not None:
            registry[Role.FEE_RECIPIENT] = (bytes(terms.fee_policy.fee_recipient),)
        self._registry = registry

    @classmethod
    def from_terms(cls, terms: EscrowTerms) -> "AuthorizationPolicy":
        return cls(terms)

    def keys_for(self, role: Role) -> tuple[bytes, ...]:
        return self._registry[role]

    def roles_of(self, key_hash: bytes) -> frozenset[Role]:
        key_hash = bytes(key_hash)
        return frozenset(role for role, keys in self._registry.items() if key_hash in keys)

    def eligible_signers(self, action: EscrowAction) -> tuple[bytes, ...]:
        if action in _QUORUM_ACTIONS:
            return self.keys_for(Role.AUTHORIZED)
        if action == EscrowAction.CANCEL:
            return self.keys_for(Role.DEPOSITOR)
        raise EscrowError(ErrorCode.INVALID_TRANSITION, f"{action.value} has no signer policy")

    def quorum(self, action: EscrowAction) -> int:
        if action in _QUORUM_ACTIONS:
            return self.terms.required_signatures
        return 1

    # --- checks ---

    def check_signers(self, action: EscrowAction, proposed_signers: Iterable[bytes]) -> None:
        proposed = frozenset(bytes(s) for s in proposed_signers)
        eligible = self.eligible_signers(action)
        present = [k for k in eligible if k in proposed]

        if action == EscrowAction.CANCEL and not present:
            raise EscrowError(ErrorCode.UNAUTHORIZED, "cancel must be signed by the depositor")
        if not present:
            raise EscrowError(ErrorCode.UNAUTHORIZED, f"no eligible signer for {action.value}")

        needed = self.quorum(action)
        if len(present) < needed:
            raise EscrowError(
                ErrorCode.QUORUM_NOT_MET,
                f"{action.value} needs {needed} of {len(eligible)} signatures, got {len(present)}",
            )

    def check_validity(self, action: EscrowAction, validity: ValidityInterval) -> None:
        lo, hi = validity.valid_from, validity.valid_to
        if lo is not None and hi is not None and lo > hi:
            raise EscrowError(ErrorCode.OUTSIDE_VALIDITY_WINDOW, "validity interval is empty")

        deadline = self.terms.deadline
        if deadline is None:
            return

        if action == EscrowAction.RELEASE:
            # Time-locked release: the whole interval must lie at or after the deadline.
            if lo is None:
                raise EscrowError(
                    ErrorCode.OUTSIDE_VALIDITY_WINDOW, "release before deadline needs a lower bound"
                )
            if lo < deadline:
                raise EscrowError(
                    ErrorCode.OUTSIDE_VALIDITY_WINDOW,
                    f"release interval starts at {lo}, before deadline {deadline}",
                )
        elif action == EscrowAction.CANCEL:
            if hi is None:
                raise EscrowError(ErrorCode.OUTSIDE_VALIDITY_WINDOW, "cancel needs a validity upper bound")
            if hi >= deadline:
                raise EscrowError(
                    ErrorCode.OUTSIDE_VALIDITY_WINDOW,
                    f"cancel interval ends at {hi}, not before deadline {deadline}",
                )

    def authorize(
        self,
        action: EscrowAction,
        proposed_signers: Iterable[bytes],
        validity: Optional[ValidityInterval] = None,
    ) -> None:
        self.check_signers(action, proposed_signers)
        self.check_validity(action, validity or ValidityInterval())

    def required_signers(self, action: EscrowAction, proposed_signers: Iterable[bytes]) -> tuple[bytes, ...]:
        """Minimal signer set, in authorized-list order."""
        proposed = frozenset(bytes(s) for s in proposed_signers)
        present = [k for k in self.eligible_signers(action) if k in proposed]
        return tuple(present[: self.quorum(action)])


def authorize(
    instance: EscrowInstance,
    action: EscrowAction,
    proposed_signers: Iterable[bytes],
    validity: Optional[ValidityInterval] = None,
) -> None:
    AuthorizationPolicy.from_terms(instance.terms).authorize(action, proposed_signers, validity)
