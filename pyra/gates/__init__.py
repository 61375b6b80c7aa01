"""Pre-execution safety gates, in the order the pipeline runs them:

  1. NameResolutionGate       name → address
  2. AddressValidationGate    address format
  3. ContractDetectionGate    contract vs. EOA
  4. SourceVerificationGate   published source (contracts only)
  5. SecurityScanGate         vulnerability scan (contracts only)
"""

from pyra.gates.address_validation import AddressValidationGate
from pyra.gates.base import Gate
from pyra.gates.contract_detection import ContractDetectionGate
from pyra.gates.name_resolution import NameResolutionGate
from pyra.gates.security_scan import SecurityScanGate
from pyra.gates.source_verification import SourceVerificationGate

__all__ = [
    "Gate",
    "NameResolutionGate",
    "AddressValidationGate",
    "ContractDetectionGate",
    "SourceVerificationGate",
    "SecurityScanGate",
]
