"""
CSV reader using Spark for delimited exports.
"""

from pyspark.sql import DataFrame, SparkSession

from .tabular import TabularData


def create_spark_session(app_name: str = "LedgerIngestion") -> SparkSession:
    """
    Create (or reuse) a local Spark session for file reading.

    Args:
        app_name: Application name

    Returns:
        SparkSession
    """
    spark = SparkSession.builder \
        .appName(app_name) \
        .master("local[*]") \
        .config("spark.ui.enabled", "false") \
        .config("spark.sql.adaptive.enabled", "true") \
        .getOrCreate()

    spark.sparkContext.setLogLevel("WARN")
    return spark


class CSVReader:
    """
    Reads delimited exports with every column kept as text.

    Type interpretation happens later in normalization, so schema inference
    is disabled here.
    """

    def __init__(self, spark: SparkSession):
        """
        Initialize CSV reader.

        Args:
            spark: Active Spark session
        """
        self.spark = spark

    def read(self, file_path: str, delimiter: str = ",") -> DataFrame:
        """
        Read a CSV file into a DataFrame of string columns.

        Args:
            file_path: Path to CSV file
            delimiter: Field delimiter

        Returns:
            Spark DataFrame
        """
        return self.spark.read \
            .option("header", "true") \
            .option("inferSchema", "false") \
            .option("delimiter", delimiter) \
            .option("multiLine", "true") \
            .option("escape", '"') \
            .option("ignoreLeadingWhiteSpace", "true") \
            .option("ignoreTrailingWhiteSpace", "true") \
            .option("mode", "PERMISSIVE") \
            .csv(file_path)

    def read_table(self, file_path: str, delimiter: str = ",") -> TabularData:
        """
        Read a CSV file into header + row lists.

        Values are trimmed, nulls become "" and rows with no value are dropped.

        Args:
            file_path: Path to CSV file
            delimiter: Field delimiter

        Returns:
            TabularData with the header row and data rows in file order
        """
        df = self.read(file_path, delimiter=delimiter)
        headers = list(df.columns)

        rows = []
        for row in df.toLocalIterator():
            values = ["" if value is None else str(value).strip() for value in row]
            if any(values):
                rows.append(values)

        return TabularData(headers=headers, rows=rows, source=file_path)
