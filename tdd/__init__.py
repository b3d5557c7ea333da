# gmg Test Suite
# This package contains all tests organized by type:
# - unit/: Fast, isolated tests for individual functions/classes
# - integration/: Multi-step scenarios across repositories and users
