# Standard certificate holder requirements for vendors and contractors.
# Used when a vendor has no InsuranceRequirement of its own and when a
# certificate request is submitted to Brokermatic.

STANDARD_REQUIREMENTS = {
    "general_liability": {
        "min_limits": {"eachOccurrence": 2000000, "aggregate": 4000000},
        "required_flags": ["additionalInsured", "waiverOfSubrogation"],
    },
    "workers_compensation": {
        "min_limits": {},
        "required_flags": ["waiverOfSubrogation"],
    },
}

# Requested from vendors when the scope of work calls for them
OPTIONAL_REQUIREMENTS = {
    "auto_liability": {
        "min_limits": {"combinedSingleLimit": 1000000},
        "required_flags": [],
        "note": "For vendors using vehicles on university property",
    },
    "umbrella_liability": {
        "min_limits": {"eachOccurrence": 5000000},
        "required_flags": [],
        "note": "For high-risk construction work",
    },
    "professional_liability": {
        "min_limits": {"perClaim": 1000000, "aggregate": 1000000},
        "required_flags": [],
        "note": "For professional services (consulting, design, etc.)",
    },
}

# Brokermatic names for our coverage types and limits
BROKERMATIC_COVERAGE_KEYS = {
    "general_liability": "generalLiability",
    "workers_compensation": "workersCompensation",
    "auto_liability": "autoLiability",
    "umbrella_liability": "umbrellaLiability",
    "environmental": "environmentalLiability",
    "professional_liability": "professionalLiability",
}

BROKERMATIC_LIMIT_KEYS = {
    "aggregate": "generalAggregate",
}

BROKERMATIC_FLAG_KEYS = {
    "additionalInsured": "requireAdditionalInsured",
    "waiverOfSubrogation": "requireWaiverOfSubrogation",
    "primaryNonContributory": "requirePrimaryNonContributory",
}
