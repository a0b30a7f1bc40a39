"""Wire codec: canonical ABI encodings for payloads, messages, calls and logs."""
