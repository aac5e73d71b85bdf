from __future__ import annotations

import logging
from typing import Sequence

from ..result import Err, Ok, Result
from .failures import ValidationFailure
from .operations import ChangesetOp

logger = logging.getLogger(__name__)


def validate(operations: Sequence) -> Result:
    """
    Check eagerly built changesets before any store interaction.

    Returns ``Ok(operations)`` unchanged, or ``Err(ValidationFailure)`` for
    the first invalid changeset in declaration order.

    Changesets built by functions (``ChangesetFnOp``) do not exist yet and
    cannot be checked here; they are only validated by the store once the
    function has run.
    """
    for name, operation in operations:
        if isinstance(operation, ChangesetOp) and not operation.changeset.valid:
            logger.info(
                "Operation %r has an invalid changeset for %s: %s",
                name,
                operation.changeset.table,
                list(operation.changeset.errors),
            )
            return Err(ValidationFailure(name, operation.changeset, {}))
    return Ok(operations)
