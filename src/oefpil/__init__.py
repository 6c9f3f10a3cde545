from importlib import metadata

try:
    __version__ = metadata.version("oefpil")
except Exception:
    __version__ = "unknown"

from .estimator import OEFPIL, IterationState, oefpil
from .options import EstimatorOptions
from .data import ObservationData
from .uncertainty import build_uncertainty_matrix
from .jacobian import JacobianEvaluator, ConstraintMatrices, constraint_matrices
from .results import EstimatorResult
from .solvers import DirectSolver, SVDSolver, QRSolver, get_solver, available_solvers
from .errors import OEFPILError, FactorizationError, ConstraintEvaluationError
from .utils.logger import LoggerManager
