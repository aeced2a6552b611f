#This file is for development purposes only

import logging

from redmine_client_impl import get_client
from tracker_client_interface.client import TransportError


def main():
    logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    client = get_client(interactive=True)

    print("\nFetching recent issues...")
    try:
        issues = client.api("issue").all({"limit": 5, "sort": "updated_on:desc"})
        print(f"[{client.get_response_code()}] {issues}")
    except TransportError as e:
        print(f"Error connecting to Redmine: {e}")

    try:
        me = client.api("user").current()
        print(f"[{client.get_response_code()}] {me}")
    except TransportError as e:
        print(f"Error connecting to Redmine: {e}")

if __name__ == "__main__":
    main()
