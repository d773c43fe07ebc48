from stack_pool.services.allocation_service import (  # noqa: F401
    AllocationOutcome,
    AllocationResult,
    AllocationService,
)
from stack_pool.services.deletion_service import (  # noqa: F401
    BulkDeletionResult,
    DeletionOutcome,
    DeletionService,
    DeletionStatus,
)
from stack_pool.services.pool_service import (  # noqa: F401
    PoolService,
    PoolSnapshot,
    generate_codes,
)
from stack_pool.services.reconciliation_service import (  # noqa: F401
    ReconciliationService,
    SyncResult,
)
from stack_pool.services.trigger_controller import (  # noqa: F401
    TriggerController,
    TriggerState,
)
