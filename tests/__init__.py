"""
Test suite for Order Sheets.

Unit tests for imaging, barcodes, layout and the writer, plus generation
scenarios and the Flask surface.
"""

import sys
from pathlib import Path

# Add the project root to the Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
