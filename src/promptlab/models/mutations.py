"""Names of the structural mutations recorded in ``Candidate.mutation_history``."""

ADD_CONTEXT = "add-context"
ADD_CONSTRAINT = "add-constraint"
ADD_EXAMPLES = "add-examples"
REFORMAT_MARKDOWN = "reformat-as-markdown"
REFORMAT_XML = "reformat-as-xml"
TONE_ADJUSTMENT = "tone-adjustment"

MUTATION_CATALOG = (
    ADD_CONTEXT,
    ADD_CONSTRAINT,
    ADD_EXAMPLES,
    REFORMAT_MARKDOWN,
    REFORMAT_XML,
    TONE_ADJUSTMENT,
)
