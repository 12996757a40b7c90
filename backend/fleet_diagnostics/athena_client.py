"""Athena client wrapper for querying diagnostic events."""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .errors import StoreQueryError

logger = logging.getLogger(__name__)


class AthenaClient:
    """Wrapper around boto3 Athena client."""

    def __init__(
        self,
        database: str,
        results_bucket: str,
        region: str = "us-east-1",
        timeout: int = 30,
        poll_interval: float = 0.5,
        client: Any = None,
    ):
        """
        Initialize Athena client.

        Args:
            database: Glue database holding the events table
            results_bucket: S3 bucket for query results
            region: AWS region
            timeout: Default maximum wait per query in seconds
            poll_interval: Delay between status polls in seconds
            client: Pre-built boto3 Athena client (created from region if None)
        """
        self.client = client if client is not None else boto3.client("athena", region_name=region)
        self.database = database
        self.output_location = f"s3://{results_bucket}/query-results/"
        self.timeout = timeout
        self.poll_interval = poll_interval

    @classmethod
    def from_settings(cls, settings: Settings) -> "AthenaClient":
        return cls(
            database=settings.athena_database,
            results_bucket=settings.athena_results_bucket,
            region=settings.aws_region,
            timeout=settings.athena_timeout_s,
        )

    def start_query(self, sql: str, parameters: Optional[Sequence[str]] = None) -> str:
        """
        Start an Athena query execution.

        Args:
            sql: SQL query string with ``?`` placeholders
            parameters: Literal values bound to the placeholders, in order

        Returns:
            Query execution ID
        """
        request: Dict[str, Any] = {
            "QueryString": sql,
            "QueryExecutionContext": {"Database": self.database},
            "ResultConfiguration": {"OutputLocation": self.output_location},
        }
        if parameters:
            request["ExecutionParameters"] = list(parameters)

        try:
            response = self.client.start_query_execution(**request)
        except (ClientError, BotoCoreError) as e:
            raise StoreQueryError(f"Could not start query: {e}") from e

        execution_id = response["QueryExecutionId"]
        logger.info(f"Started query: {execution_id}")
        return execution_id

    def poll_query(self, execution_id: str, timeout: Optional[int] = None) -> str:
        """
        Poll query status until complete or timeout.

        Args:
            execution_id: Query execution ID
            timeout: Maximum wait time in seconds (client default if None)

        Returns:
            Final query state (SUCCEEDED, FAILED, CANCELLED, TIMEOUT)
        """
        timeout = self.timeout if timeout is None else timeout
        start_time = time.monotonic()

        while True:
            response = self.client.get_query_execution(QueryExecutionId=execution_id)
            status = response["QueryExecution"]["Status"]
            state = status["State"]

            if state in ("SUCCEEDED", "FAILED", "CANCELLED"):
                logger.info(f"Query {execution_id}: {state}")
                if state == "FAILED":
                    reason = status.get("StateChangeReason", "Unknown")
                    logger.error(f"Query {execution_id} failed: {reason}")
                return state

            if time.monotonic() - start_time > timeout:
                logger.error(f"Query {execution_id} timeout after {timeout}s")
                self.stop_query(execution_id)
                return "TIMEOUT"

            time.sleep(self.poll_interval)

    def stop_query(self, execution_id: str) -> None:
        """Ask Athena to abandon a running query."""
        try:
            self.client.stop_query_execution(QueryExecutionId=execution_id)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not stop query {execution_id}: {e}")

    def get_results(self, execution_id: str) -> List[Dict[str, Optional[str]]]:
        """
        Get query results.

        Args:
            execution_id: Query execution ID

        Returns:
            List of result rows as dictionaries of column name to string value
        """
        results: List[Dict[str, Optional[str]]] = []
        column_names: Optional[List[str]] = None
        paginator = self.client.get_paginator("get_query_results")

        for page in paginator.paginate(QueryExecutionId=execution_id):
            rows = page["ResultSet"]["Rows"]

            if column_names is None:
                # Header row only appears on the first page
                if not rows:
                    continue
                column_names = [col.get("VarCharValue") for col in rows[0]["Data"]]
                rows = rows[1:]

            for row in rows:
                results.append({
                    column_names[i]: col.get("VarCharValue")
                    for i, col in enumerate(row["Data"])
                })

        return results

    def run_query(
        self,
        sql: str,
        parameters: Optional[Sequence[str]] = None,
        timeout: Optional[int] = None,
    ) -> List[Dict[str, Optional[str]]]:
        """
        Execute query and return results.

        Args:
            sql: SQL query string with ``?`` placeholders
            parameters: Literal values bound to the placeholders
            timeout: Maximum wait time in seconds

        Returns:
            List of result rows as dictionaries

        Raises:
            StoreQueryError: If the query does not succeed
        """
        execution_id = self.start_query(sql, parameters)
        try:
            state = self.poll_query(execution_id, timeout)
        except (ClientError, BotoCoreError) as e:
            raise StoreQueryError(f"Query status unavailable: {e}", query_id=execution_id) from e

        if state != "SUCCEEDED":
            raise StoreQueryError(f"Query failed with state: {state}", query_id=execution_id)

        try:
            return self.get_results(execution_id)
        except (ClientError, BotoCoreError) as e:
            raise StoreQueryError(f"Could not fetch results: {e}", query_id=execution_id) from e
