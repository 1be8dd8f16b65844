"""
Basic usage example for the Import/Export Orchestrator

Exports a small in-memory user list to CSV, then imports an edited copy back
with the Update duplicate strategy and prints the outcome.
"""

import asyncio
import tempfile

from import_export_orchestrator import (
    ImportExportOrchestrator,
    EngineSettings,
    TenantContext,
    ExportFormat,
    DuplicateHandlingStrategy,
    RowProcessorResult,
    ProcessingStatus,
)


USERS = {
    "alice@example.com": {"name": "Alice", "department": "Finance"},
    "bob@example.com": {"name": "Bob", "department": "Operations"},
}


async def fetch_users(scope, filters):
    department = filters.get("department")
    return [
        {"email": email, **user}
        for email, user in USERS.items()
        if department is None or user["department"] == department
    ]


def map_user(user):
    return {"Email": user["email"], "Name": user["name"], "Department": user["department"]}


async def import_user(scope, row, strategy):
    if not row.get("Email"):
        return RowProcessorResult(False, "Email is required")

    existing = USERS.get(row["Email"])
    if existing is not None:
        if strategy is DuplicateHandlingStrategy.SKIP:
            return RowProcessorResult(False, is_skip=True)
        existing.update(name=row.get("Name", ""), department=row.get("Department", ""))
        return RowProcessorResult(True, is_update=True)

    USERS[row["Email"]] = {"name": row.get("Name", ""), "department": row.get("Department", "")}
    return RowProcessorResult(True)


async def main():
    settings = EngineSettings(storage_path=tempfile.mkdtemp(prefix="ieo-"))
    context = TenantContext(organization_id="org-1", user_id="u-1", user_name="Example Admin")

    async with ImportExportOrchestrator.from_settings(settings, enable_cleanup=False) as orchestrator:
        export_id = await orchestrator.start_export_job(
            context, "User", ExportFormat.CSV, fetch_users, column_mapper=map_user
        )
        await orchestrator.wait_for_idle()

        status = await orchestrator.get_export_job_status(export_id)
        print(f"Export {export_id}: {status.status.value}, {status.total_rows} rows")
        data = await orchestrator.download_export_file(export_id)
        print(data.decode("utf-8"))

        edited = data.replace(b"Operations", b"Logistics") + b'"","Nobody","None"\r\n'
        import_id = await orchestrator.start_import_job(
            context, "User", edited, "users.csv", import_user, DuplicateHandlingStrategy.UPDATE
        )
        await orchestrator.wait_for_idle()

        result = await orchestrator.get_import_job_status(import_id)
        print(f"Import {import_id}: {result.message}")
        if result.status is ProcessingStatus.COMPLETED and result.error_report_id:
            report = await orchestrator.get_import_error_report(result.error_report_id)
            print(f"Error report: {len(report)} bytes")

        history = await orchestrator.get_history(context, "User")
        for record in history.items:
            print(f"{record.operation_type.value:<7} {record.status.value:<10} {record.file_name}")


if __name__ == "__main__":
    asyncio.run(main())
