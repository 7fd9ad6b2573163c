"""
DiagFlow Backend - REST API for the DiagFlow vehicle diagnostic app

This package provides a FastAPI-based web service behind the DiagFlow
technician app. It enables:

- Saving diagnostic job data
- Uploading step photos to a served file store
- Rendering a PDF summary of a diagnostic session
- Emailing the report and cleaning up the generated file afterwards

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - reporting: Submit-report pipeline (validate, assemble, deliver, clean up)
    - rendering: Session to document blocks, and blocks to PDF
    - assembler: Writes rendered reports into the file store
    - dispatch: Email construction and SMTP transport
    - cleanup: Delayed deletion of dispatched reports
    - file_store: Upload validation and unique file naming
    - job_store: In-memory job registry
    - models: Pydantic models for request/response validation
    - configuration: Config loading and merging logic

Usage:
    Run the API server with:
        uvicorn diagflow_backend.main:app --reload --host 0.0.0.0 --port 8080

    Or use the console script:
        diagflow-api
"""
