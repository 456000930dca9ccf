"""
Runtime records (analyses, applications, certificates, unknown-ingredient log) go to a
throwaway directory so test runs never touch data/.
"""
import os
import tempfile

os.environ.setdefault("HALALCHECK_RECORDS_DIR", tempfile.mkdtemp(prefix="halalcheck-tests-"))
