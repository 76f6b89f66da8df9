"""Test fixtures and utilities."""

from pathlib import Path

import pytest

from statement_recon.config import Config, LedgerConfig, StorageConfig, WorkerConfig
from statement_recon.filestore import FileStore
from statement_recon.state_store import StateStore

# Layout text of a December 2025 statement as produced by `pdftotext -layout`.
# Electronic Payments continues across a page break; page 3 is a check image
# page that must be cut off.
SAMPLE_STATEMENT_TEXT = """\
                                              STATEMENT OF ACCOUNT

HOMEBOOKS KITCHEN LLC                                   Page:                                1 of 3
1450 FULTON ST                                          Statement Period: Dec 01 2025-Dec 31 2025
BROOKLYN NY 11216                                       Cust Ref #:             4280712609-039-E-***
                                                        Primary Account #:               428-0712609

Chef's Choice Business Checking
HOMEBOOKS KITCHEN LLC                                                              Account # 428-0712609

ACCOUNT SUMMARY
Beginning Balance                   12,000.00                  Average Collected Balance      10,912.40
Electronic Deposits                  2,450.00                  Interest Earned This Period         0.00
Other Credits                           25.00                  Annual Percentage Yield Earned  0.00%
Checks Paid                          2,114.50                  Days in Period                     31
Electronic Payments                  1,600.50
Other Withdrawals                       60.00
Service Charges                         15.00
Ending Balance                      10,685.00

DAILY ACCOUNT ACTIVITY
Electronic Deposits
POSTING DATE     DESCRIPTION                                                                 AMOUNT
12/01            CCD DEPOSIT, BANKCARD MTOT DEP 251130 8037612345                         1,200.00
12/15            CCD DEPOSIT, UBER USA 6787 EDI PAYMNT 1140042                            1,250.00
                                                                              Subtotal:   2,450.00
Other Credits
POSTING DATE     DESCRIPTION                                                                 AMOUNT
12/09            OD GRACE REFUND                                                              25.00
                                                                              Subtotal:      25.00
Checks Paid     No. Checks: 2    *Indicates break in serial sequence or check processed electronically
DATE      SERIAL NO.          AMOUNT          DATE      SERIAL NO.          AMOUNT
12/01     2730                500.00          12/18     2739*             1,614.50
                                                                              Subtotal:   2,114.50
Electronic Payments
POSTING DATE     DESCRIPTION                                                                 AMOUNT
12/02            DEBIT POS AP, AUT 120225 DDA PURCHASE AP                                 1,525.50
                    JETRO CASH CARRY      BROOKLYN     * NY
                    4085404039877380

Call 1-800-937-2000 for 24-hour Bank-by-Phone services or connect to www.tdbank.com
Bank Deposits FDIC Insured | TD Bank, N.A. | Equal Housing Lender

                                              STATEMENT OF ACCOUNT

HOMEBOOKS KITCHEN LLC                                   Page:                                2 of 3
                                                        Statement Period: Dec 01 2025-Dec 31 2025
                                                        Cust Ref #:             4280712609-039-E-***
                                                        Primary Account #:               428-0712609

DAILY ACCOUNT ACTIVITY
Electronic Payments (continued)
POSTING DATE     DESCRIPTION                                                                 AMOUNT
12/10            ELECTRONIC PMT-WEB, CON ED OF NY INTELL CK 7163512                          75.00
                                                                              Subtotal:   1,600.50
Other Withdrawals
POSTING DATE     DESCRIPTION                                                                 AMOUNT
12/20            ATM CASH WITHDRAWAL 1234 FULTON ST                                           60.00
                    4085404039877380
                                                                              Subtotal:      60.00
Service Charges
POSTING DATE     DESCRIPTION                                                                 AMOUNT
12/31            MAINTENANCE FEE                                                              15.00
                                                                              Subtotal:      15.00

DAILY BALANCE SUMMARY
DATE                      BALANCE                         DATE                      BALANCE
11/30                   12,000.00                         12/15                  11,724.50
12/01                   12,700.00                         12/31                  10,685.00

Call 1-800-937-2000 for 24-hour Bank-by-Phone services or connect to www.tdbank.com
Bank Deposits FDIC Insured | TD Bank, N.A. | Equal Housing Lender

                                              STATEMENT OF ACCOUNT

HOMEBOOKS KITCHEN LLC                                   Page:                                3 of 3
Checks Paid
DATE      SERIAL NO.          AMOUNT
12/05     9999                999.99
"""


@pytest.fixture
def sample_statement_text() -> str:
    """Full December 2025 statement layout text."""
    return SAMPLE_STATEMENT_TEXT


@pytest.fixture
def sample_statement_file(tmp_path) -> Path:
    """Statement layout text saved as a .txt upload."""
    path = tmp_path / "december.txt"
    path.write_text(SAMPLE_STATEMENT_TEXT, encoding="utf-8")
    return path


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_state.db"


@pytest.fixture
def store(temp_db) -> StateStore:
    """Fresh state store with all migrations applied."""
    return StateStore(temp_db, run_migrations=True)


@pytest.fixture
def config(tmp_path) -> Config:
    """Config pointing at temporary storage with a fast worker."""
    return Config(
        storage=StorageConfig(
            state_db_path=tmp_path / "test_state.db",
            file_store_path=tmp_path / "files",
        ),
        worker=WorkerConfig(poll_interval_seconds=0.01, job_timeout_seconds=30),
        ledger=LedgerConfig(backend="sqlite"),
    )


@pytest.fixture
def filestore(tmp_path) -> FileStore:
    return FileStore(tmp_path / "files")
