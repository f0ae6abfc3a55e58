"""recordledger core: types, models, errors, keys and canonical encoding."""
