"""
Upload reader dispatching between delimited text and spreadsheets.
"""

from pyspark.sql import SparkSession

from src.core.models import UploadedFile
from src.core.schema.column_spec import ColumnSpec

from .csv_reader import CSVReader, create_spark_session
from .spreadsheet_reader import SpreadsheetReader
from .tabular import TabularData

CSV_CONTENT_TYPES = {"text/csv", "application/csv"}


def is_delimited(uploaded: UploadedFile) -> bool:
    """
    Decide whether an upload is delimited text.

    A ".csv" file name or a CSV content type wins; anything else is read as
    a spreadsheet.
    """
    if uploaded.file_name and uploaded.file_name.lower().endswith(".csv"):
        return True
    content_type = (uploaded.content_type or "").split(";")[0].strip().lower()
    return content_type in CSV_CONTENT_TYPES


class FileReader:
    """
    Reads an uploaded file into TabularData.

    The Spark session backing the CSV reader is created on first use, so
    spreadsheet-only callers never start a JVM.
    """

    def __init__(
        self,
        spark: SparkSession | None = None,
        spreadsheet_reader: SpreadsheetReader | None = None,
    ):
        """
        Initialize file reader.

        Args:
            spark: Active Spark session (created lazily if None)
            spreadsheet_reader: Spreadsheet reader (default instance if None)
        """
        self._spark = spark
        self._csv_reader: CSVReader | None = None
        self.spreadsheet_reader = spreadsheet_reader or SpreadsheetReader()

    @property
    def csv_reader(self) -> CSVReader:
        if self._csv_reader is None:
            if self._spark is None:
                self._spark = create_spark_session()
            self._csv_reader = CSVReader(self._spark)
        return self._csv_reader

    def read(self, uploaded: UploadedFile, spec: ColumnSpec) -> TabularData:
        """
        Read an upload for a record type.

        Args:
            uploaded: Uploaded file
            spec: Column spec of the declared record type

        Returns:
            TabularData
        """
        if is_delimited(uploaded):
            return self.csv_reader.read_table(str(uploaded.path))
        return self.spreadsheet_reader.read_table(uploaded.path, spec)
