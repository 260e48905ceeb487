"""Watch mode: file watching and the trigger combinators it relies on."""
