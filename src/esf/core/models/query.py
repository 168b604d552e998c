from enum import StrEnum

from pydantic import BaseModel, Field


class SearchMode(StrEnum):
    blastn = "blastn"  # nucleotide
    blastp = "blastp"  # protein
    blastx = "blastx"  # translated nucleotide to protein
    tblastn = "tblastn"  # protein to translated nucleotide
    tblastx = "tblastx"  # translated nucleotide to translated nucleotide


class Database(StrEnum):
    nt = "nt"
    nr = "nr"
    refseq_rna = "refseq_rna"
    refseq_protein = "refseq_protein"
    swissprot = "swissprot"
    core_nt = "core_nt"


class SearchQuery(BaseModel):
    """Input parameters of one search, captured at submit time.

    The sequence is passed through untouched; validating FASTA content is the
    search service's job.
    """

    sequence: str
    search_mode: SearchMode = Field(default=SearchMode.blastn, alias="searchMode")
    database: Database = Database.nt

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    def to_submission_payload(self) -> dict:
        """Body expected by the search service's submit endpoint."""
        return {
            "sequence": self.sequence,
            "blast_type": str(self.search_mode),
            "database": str(self.database),
        }
