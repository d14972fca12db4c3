"""Receipt store tests; each test writes under its own ``tmp_path``."""
