from locust import HttpUser, task, between
import random
import uuid

PLACES = ["North Campus", "South Campus", "Downtown Station", "Airport", "Library", "Stadium"]

class CampusRider(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        name = f"load_{uuid.uuid4().hex[:10]}"
        res = self.client.post("/users", json={
            "username": name,
            "full_name": name,
            "email": f"{name}@campus.edu",
            "password": f"{name}-load-pw",
        })
        data = res.json()
        self.user_id = data["user"]["id"]
        self.headers = {"Authorization": f"Bearer {data['access_token']}"}

    @task(5)
    def browse_rides(self):
        self.client.get("/rides", params={
            "destination": random.choice(PLACES).split()[0],
            "available_seats": 1,
        }, name="/rides?filters")

    @task(2)
    def post_ride(self):
        pickup, destination = random.sample(PLACES, 2)
        payload = {
            "ride_type": random.choice(["offer", "request"]),
            "pickup_location": pickup,
            "destination": destination,
            "date_time": f"2026-11-{random.randint(1, 28):02d}T{random.randint(6, 22):02d}:00:00",
            "available_seats": random.randint(1, 7),
            "price": random.randint(0, 3000),
        }
        with self.client.post("/rides", json=payload, headers=self.headers, catch_response=True) as response:
            if response.status_code == 201:
                response.success()
            else:
                response.failure(f"Failed with status {response.status_code}: {response.text}")

    @task(1)
    def request_seat(self):
        rides = self.client.get("/rides", params={"available_seats": 1}, name="/rides?filters").json()
        candidates = [r for r in rides if r["user_id"] != self.user_id]
        if not candidates:
            return
        ride = random.choice(candidates)
        with self.client.post("/ride-requests", json={"ride_id": ride["id"]}, headers=self.headers,
                              catch_response=True) as response:
            # A repeat request on the same ride is an expected 400
            if response.status_code in (201, 400):
                response.success()
            else:
                response.failure(f"Failed with status {response.status_code}: {response.text}")
