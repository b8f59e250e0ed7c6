"""Research compliance portal: IBC, PMO and change request forms and workflow API."""

__version__ = "0.1.0"
