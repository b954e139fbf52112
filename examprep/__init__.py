"""Quiz session engine and data cache layer of the exam-prep client."""
